"""Shared operator state - thread-safe singleton for Kubernetes clients and the reconciler."""

import threading
from dataclasses import dataclass, field

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from config import AddonConfig
from models import AddonRequest
from reconciler import Reconciler
from store import ClusterStore, KubernetesClusterStore


@dataclass
class OperatorState:
    """Thread-safe operator state container.

    This class provides thread-safe access to shared operator resources:
    - Kubernetes API clients
    - Cluster store
    - Reconciler and its configuration
    - One lock per Addon, serializing reconcile passes for it

    All handlers should use the global `state` instance rather than
    creating their own clients.
    """

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _config: AddonConfig | None = field(default=None, repr=False)
    _store: ClusterStore | None = field(default=None, repr=False)
    _reconciler: Reconciler | None = field(default=None, repr=False)
    _api_client: k8s_client.ApiClient | None = field(default=None, repr=False)
    _k8s_configured: bool = field(default=False, repr=False)
    _addon_locks: dict[AddonRequest, threading.Lock] = field(
        default_factory=dict, repr=False
    )

    def _ensure_k8s_config(self) -> None:
        """Ensure Kubernetes configuration is loaded (must hold lock)."""
        if not self._k8s_configured:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._k8s_configured = True

    def get_config(self) -> AddonConfig:
        """Get or load the add-on configuration (thread-safe)."""
        with self._lock:
            if self._config is None:
                self._config = AddonConfig.from_env()
            return self._config

    def get_store(self) -> ClusterStore:
        """Get or create the Kubernetes-backed cluster store (thread-safe)."""
        with self._lock:
            if self._store is None:
                self._ensure_k8s_config()
                self._api_client = k8s_client.ApiClient()
                self._store = KubernetesClusterStore(
                    k8s_client.CoreV1Api(self._api_client),
                    k8s_client.BatchV1Api(self._api_client),
                    k8s_client.CustomObjectsApi(self._api_client),
                    self._api_client,
                )
            return self._store

    def get_reconciler(self) -> Reconciler:
        """Get or create the reconciler (thread-safe)."""
        config = self.get_config()
        store = self.get_store()
        with self._lock:
            if self._reconciler is None:
                self._reconciler = Reconciler(store, config)
            return self._reconciler

    def addon_lock(self, request: AddonRequest) -> threading.Lock:
        """Get the lock serializing reconcile passes for one Addon (thread-safe)."""
        with self._lock:
            lock = self._addon_locks.get(request)
            if lock is None:
                lock = self._addon_locks[request] = threading.Lock()
            return lock

    def forget_addon(self, request: AddonRequest) -> None:
        """Drop the lock of a deleted Addon."""
        with self._lock:
            self._addon_locks.pop(request, None)

    def configure(
        self, config: AddonConfig | None = None, store: ClusterStore | None = None
    ) -> None:
        """Replace the configuration and/or store, dropping the cached reconciler."""
        with self._lock:
            if config is not None:
                self._config = config
            if store is not None:
                self._store = store
            self._reconciler = None

    def close(self) -> None:
        """Close all connections."""
        with self._lock:
            if self._api_client is not None:
                self._api_client.close()
                self._api_client = None
            self._store = None
            self._reconciler = None


# Global operator state singleton
state = OperatorState()


def get_reconciler() -> Reconciler:
    """Get the shared reconciler."""
    return state.get_reconciler()
