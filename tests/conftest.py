"""Pytest configuration and fixtures."""

import copy
from typing import Any

import pytest

from config import AddonConfig
from models import (
    AlreadyExistsError,
    ManagedResourceRef,
    ResourceKind,
    TransientStoreError,
)
from reconciler import Reconciler
from store import ClusterStore
from utils import encode_secret_value

NAMESPACE = "redhat-starburst-operator"
ADDON_NAME = "starburst"


class FakeClusterStore(ClusterStore):
    """In-memory ClusterStore recording every call.

    ``get_errors`` / ``create_errors`` map a ref to the exception the next
    call for that ref raises.
    """

    def __init__(self) -> None:
        self.objects: dict[ManagedResourceRef, dict[str, Any]] = {}
        self.calls: list[tuple[str, ManagedResourceRef]] = []
        self.get_errors: dict[ManagedResourceRef, Exception] = {}
        self.create_errors: dict[ManagedResourceRef, Exception] = {}

    def put(self, ref: ManagedResourceRef, body: dict[str, Any]) -> None:
        self.objects[ref] = copy.deepcopy(body)

    def get(self, ref: ManagedResourceRef) -> dict[str, Any] | None:
        self.calls.append(("get", ref))
        if ref in self.get_errors:
            raise self.get_errors[ref]
        obj = self.objects.get(ref)
        return copy.deepcopy(obj) if obj is not None else None

    def create(self, ref: ManagedResourceRef, body: dict[str, Any]) -> None:
        self.calls.append(("create", ref))
        if ref in self.create_errors:
            raise self.create_errors[ref]
        if ref in self.objects:
            raise AlreadyExistsError(f"{ref} already exists", ref=ref, operation="create")
        self.objects[ref] = copy.deepcopy(body)

    @property
    def creates(self) -> list[ManagedResourceRef]:
        return [ref for op, ref in self.calls if op == "create"]

    def reset_calls(self) -> None:
        self.calls.clear()


def ref(kind: ResourceKind, name: str, namespace: str | None = NAMESPACE) -> ManagedResourceRef:
    return ManagedResourceRef(kind, namespace, name)


ADDON_REF = ref(ResourceKind.ADDON, ADDON_NAME)
CLUSTER_VERSION_REF = ref(ResourceKind.CLUSTER_VERSION, "version", namespace=None)
PARAMETERS_REF = ref(ResourceKind.SECRET, "addon-managed-starburst-parameters")
LICENSE_REF = ref(ResourceKind.SECRET, "starburst-license")
INTEGRATION_REF = ref(ResourceKind.SECRET, "addon")
PROMETHEUS_REF = ref(ResourceKind.PROMETHEUS, "starburst")
SERVICE_MONITOR_REF = ref(ResourceKind.SERVICE_MONITOR, "starburst")
FEDERATION_REF = ref(ResourceKind.SERVICE_MONITOR, "starburst-federation")
PROMETHEUS_RULE_REF = ref(ResourceKind.PROMETHEUS_RULE, "starburst")
CRON_JOB_REF = ref(ResourceKind.CRON_JOB, "starburst")

DEPENDENT_REFS = [
    SERVICE_MONITOR_REF,
    FEDERATION_REF,
    PROMETHEUS_RULE_REF,
    CRON_JOB_REF,
]


def secret(name: str, data: dict[str, str]) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": NAMESPACE},
        "data": {key: encode_secret_value(value) for key, value in data.items()},
    }


@pytest.fixture
def config() -> AddonConfig:
    return AddonConfig(
        short_requeue_seconds=5,
        resync_interval_seconds=60,
        error_backoff_seconds=30,
    )


@pytest.fixture
def store() -> FakeClusterStore:
    return FakeClusterStore()


@pytest.fixture
def populated_store(store: FakeClusterStore) -> FakeClusterStore:
    """Store with every externally provided resource present."""
    store.put(
        ADDON_REF,
        {
            "apiVersion": "addon.redhat.com/v1alpha1",
            "kind": "Addon",
            "metadata": {
                "name": ADDON_NAME,
                "namespace": NAMESPACE,
                "uid": "addon-uid-1234",
            },
        },
    )
    store.put(
        CLUSTER_VERSION_REF,
        {
            "apiVersion": "config.openshift.io/v1",
            "kind": "ClusterVersion",
            "metadata": {"name": "version"},
            "spec": {"clusterID": "cluster-abc"},
        },
    )
    store.put(
        PARAMETERS_REF,
        secret("addon-managed-starburst-parameters", {"starburst-license": "ABC123"}),
    )
    store.put(
        INTEGRATION_REF,
        secret(
            "addon",
            {
                "token-url": "https://sso.example.com/token",
                "remote-write-url": "https://metrics.example.com/api/v1/write",
                "client-id": "client",
                "client-secret": "s3cr3t",
            },
        ),
    )
    return store


@pytest.fixture
def reconciler(populated_store: FakeClusterStore, config: AddonConfig) -> Reconciler:
    return Reconciler(populated_store, config)


@pytest.fixture
def transient_error():
    def make(target: ManagedResourceRef, operation: str = "get") -> TransientStoreError:
        return TransientStoreError(
            f"could not {operation} {target}: 503 Service Unavailable",
            ref=target,
            operation=operation,
        )

    return make
