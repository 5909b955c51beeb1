"""ServiceMonitors for the add-on's own metrics and for cluster federation."""

from typing import Any

FEDERATION_SOURCE_NAMESPACE = "openshift-monitoring"
FEDERATION_SERVER_NAME = "prometheus-k8s.openshift-monitoring.svc.cluster.local"
SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"

# Series pulled from the cluster monitoring stack, filtered to the namespace
FEDERATED_SERIES = [
    "container_memory_working_set_bytes",
    "node_namespace_pod_container:container_cpu_usage_seconds_total:sum_irate",
    "namespace_workload_pod:kube_pod_owner:relabel",
    "kube_pod_container_info",
    "kube_pod_status_ready",
    "kube_pod_container_status_last_terminated_reason",
    "kube_pod_container_status_waiting",
    "kube_namespace_status_phase",
    "node_namespace_pod:kube_pod_info:",
    "kube_service_info",
    "cluster:namespace:pod_memory:active:kube_pod_container_resource_limits",
    "container_cpu_cfs_throttled_seconds_total",
    "container_fs_usage_bytes",
    "container_network_receive_bytes_total",
    "container_network_transmit_bytes_total",
    "kube_deployment_status_replicas_available",
    "container_memory_usage_bytes",
    "kube_pod_container_resource_requests",
    "kube_deployment_status_replicas_unavailable",
    "kube_persistentvolumeclaim_status_phase",
    "kube_pod_container_resource_limits",
    "cluster:namespace:pod_cpu:active:kube_pod_container_resource_limits",
    "container_network_receive_packets_total",
    "container_network_transmit_packets_total",
    "kube_running_pod_ready",
    "container_cpu_usage_seconds_total",
    "kube_pod_container_status_restarts_total",
    "kube_pod_status_phase",
    "cluster:namespace:pod_memory:active:kube_pod_container_resource_requests",
]

# Cluster-wide series, not filtered by namespace
FEDERATED_CLUSTER_SERIES = ["kube_node_status_capacity"]


def federation_match_params(namespace: str) -> list[str]:
    """Return the ``match[]`` selectors for the /federate endpoint."""
    selectors = [f'{series}{{namespace="{namespace}"}}' for series in FEDERATED_SERIES]
    return selectors + list(FEDERATED_CLUSTER_SERIES)


def build_service_monitor(
    name: str, namespace: str, app_label: str = "starburst-enterprise"
) -> dict[str, Any]:
    """Build the ServiceMonitor scraping the Starburst metrics port."""
    return {
        "apiVersion": "monitoring.coreos.com/v1",
        "kind": "ServiceMonitor",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "namespaceSelector": {"matchNames": [namespace]},
            "selector": {"matchLabels": {"app": app_label}},
            "endpoints": [{"port": "metrics", "interval": "2s"}],
        },
    }


def build_federation_service_monitor(name: str, namespace: str) -> dict[str, Any]:
    """Build the ServiceMonitor federating namespace series from cluster monitoring."""
    return {
        "apiVersion": "monitoring.coreos.com/v1",
        "kind": "ServiceMonitor",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "jobLabel": "openshift-monitoring-federation",
            "namespaceSelector": {"matchNames": [FEDERATION_SOURCE_NAMESPACE]},
            "selector": {"matchLabels": {"app.kubernetes.io/instance": "k8s"}},
            "endpoints": [
                {
                    "bearerTokenFile": f"{SERVICE_ACCOUNT_DIR}/token",
                    "port": "web",
                    "path": "/federate",
                    "interval": "30s",
                    "scheme": "https",
                    "params": {"match[]": federation_match_params(namespace)},
                    "tlsConfig": {
                        "insecureSkipVerify": True,
                        "serverName": FEDERATION_SERVER_NAME,
                        "caFile": f"{SERVICE_ACCOUNT_DIR}/service-ca.crt",
                    },
                }
            ],
        },
    }
