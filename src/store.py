"""Cluster Store: the operator's only I/O boundary.

The reconciler reads and creates cluster objects exclusively through the
``ClusterStore`` interface. ``KubernetesClusterStore`` implements it on top
of the official Kubernetes client, mapping API errors to the operator's
exception taxonomy.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

import urllib3
from kubernetes import client as k8s_client
from kubernetes.client import ApiException

from metrics import STORE_API_CALLS, STORE_API_DURATION
from models import (
    AlreadyExistsError,
    ManagedResourceRef,
    ResourceKind,
    TransientStoreError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ClusterStore(ABC):
    """Fetches and persists cluster objects by kind, namespace and name."""

    @abstractmethod
    def get(self, ref: ManagedResourceRef) -> dict[str, Any] | None:
        """Return the object, or None if it does not exist.

        Raises:
            TransientStoreError: for any failure other than absence
        """

    @abstractmethod
    def create(self, ref: ManagedResourceRef, body: dict[str, Any]) -> None:
        """Create the object.

        A successful create is not guaranteed to be visible to an
        immediately following ``get``.

        Raises:
            AlreadyExistsError: if the object already exists
            TransientStoreError: for any other failure
        """


class KubernetesClusterStore(ClusterStore):
    """ClusterStore backed by the Kubernetes API."""

    def __init__(
        self,
        core_api: k8s_client.CoreV1Api,
        batch_api: k8s_client.BatchV1Api,
        custom_api: k8s_client.CustomObjectsApi,
        api_client: k8s_client.ApiClient | None = None,
    ) -> None:
        self._core = core_api
        self._batch = batch_api
        self._custom = custom_api
        self._api_client = api_client or k8s_client.ApiClient()

    def get(self, ref: ManagedResourceRef) -> dict[str, Any] | None:
        try:
            return self._call(ref, "get", lambda: self._read(ref))
        except ApiException as e:
            if e.status == 404:
                logger.debug("%s not found", ref)
                return None
            raise TransientStoreError(
                f"could not get {ref}: {e.status} {e.reason}", ref=ref, operation="get"
            ) from e
        except urllib3.exceptions.HTTPError as e:
            raise TransientStoreError(
                f"could not get {ref}: {e}", ref=ref, operation="get"
            ) from e

    def create(self, ref: ManagedResourceRef, body: dict[str, Any]) -> None:
        try:
            self._call(ref, "create", lambda: self._create(ref, body))
        except ApiException as e:
            if e.status == 409:
                raise AlreadyExistsError(
                    f"{ref} already exists", ref=ref, operation="create"
                ) from e
            raise TransientStoreError(
                f"could not create {ref}: {e.status} {e.reason}",
                ref=ref,
                operation="create",
            ) from e
        except urllib3.exceptions.HTTPError as e:
            raise TransientStoreError(
                f"could not create {ref}: {e}", ref=ref, operation="create"
            ) from e

    def _call(
        self, ref: ManagedResourceRef, operation: str, func: Callable[[], T]
    ) -> T:
        """Run an API call, recording call count and duration."""
        kind = ref.kind.kind
        start = time.monotonic()
        status = "error"
        try:
            result = func()
            status = "success"
            return result
        except ApiException as e:
            if e.status == 404:
                status = "not_found"
            raise
        finally:
            STORE_API_DURATION.labels(kind=kind, operation=operation).observe(
                time.monotonic() - start
            )
            STORE_API_CALLS.labels(kind=kind, operation=operation, status=status).inc()

    def _read(self, ref: ManagedResourceRef) -> dict[str, Any]:
        kind = ref.kind
        if kind is ResourceKind.SECRET:
            obj = self._core.read_namespaced_secret(ref.name, ref.namespace)
            return self._api_client.sanitize_for_serialization(obj)
        if kind is ResourceKind.CRON_JOB:
            obj = self._batch.read_namespaced_cron_job(ref.name, ref.namespace)
            return self._api_client.sanitize_for_serialization(obj)
        if kind.namespaced:
            return self._custom.get_namespaced_custom_object(
                kind.group, kind.version, ref.namespace, kind.plural, ref.name
            )
        return self._custom.get_cluster_custom_object(
            kind.group, kind.version, kind.plural, ref.name
        )

    def _create(self, ref: ManagedResourceRef, body: dict[str, Any]) -> None:
        kind = ref.kind
        if kind is ResourceKind.SECRET:
            self._core.create_namespaced_secret(ref.namespace, body)
        elif kind is ResourceKind.CRON_JOB:
            self._batch.create_namespaced_cron_job(ref.namespace, body)
        elif kind.namespaced:
            self._custom.create_namespaced_custom_object(
                kind.group, kind.version, ref.namespace, kind.plural, body
            )
        else:
            self._custom.create_cluster_custom_object(
                kind.group, kind.version, kind.plural, body
            )
