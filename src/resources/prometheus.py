"""Prometheus instance that scrapes the add-on and forwards to remote write."""

from typing import Any

from constants import INTEGRATION_CLIENT_ID_KEY, INTEGRATION_CLIENT_SECRET_KEY
from models import MisconfigurationError

PROMETHEUS_SERVICE_ACCOUNT = "starburst-enterprise-helm-operator-controller-manager"
PROMETHEUS_MEMORY_REQUEST = "400Mi"

# Series forwarded to the remote write endpoint
REMOTE_WRITE_KEEP_REGEX = (
    "csv_succeeded$|csv_abnormal$|cluster_version$|ALERTS$|subscription_sync_total"
    "|trino_.*$|jvm_heap_memory_used$|node_.*$|namespace_.*$|kube_.*$|cluster.*$"
    "|container_.*$"
)


def build_prometheus(
    name: str,
    namespace: str,
    *,
    token_url: str,
    remote_write_url: str,
    cluster_id: str,
    credentials_secret: str,
    rule_labels: dict[str, str],
) -> dict[str, Any]:
    """Build the Prometheus custom resource.

    Args:
        name: Prometheus name
        namespace: Namespace of the monitoring stack
        token_url: OAuth2 token endpoint for remote write
        remote_write_url: Remote write endpoint
        cluster_id: Cluster identifier attached as an external label
        credentials_secret: Secret holding the OAuth2 client id and secret
        rule_labels: Labels selecting the PrometheusRule objects to load

    Raises:
        MisconfigurationError: if an endpoint or the cluster ID is empty
    """
    missing = [
        label
        for label, value in (
            ("token URL", token_url),
            ("remote write URL", remote_write_url),
            ("cluster ID", cluster_id),
        )
        if not value
    ]
    if missing:
        raise MisconfigurationError(
            f"cannot build Prometheus {namespace}/{name}: missing {', '.join(missing)}"
        )

    return {
        "apiVersion": "monitoring.coreos.com/v1",
        "kind": "Prometheus",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "ruleSelector": {"matchLabels": dict(rule_labels)},
            "externalLabels": {"cluster_id": cluster_id},
            "logLevel": "debug",
            "remoteWrite": [
                {
                    "url": remote_write_url,
                    "writeRelabelConfigs": [
                        {"action": "keep", "regex": REMOTE_WRITE_KEEP_REGEX}
                    ],
                    "tlsConfig": {"insecureSkipVerify": True},
                    "oauth2": {
                        "clientId": {
                            "secret": {
                                "name": credentials_secret,
                                "key": INTEGRATION_CLIENT_ID_KEY,
                            }
                        },
                        "clientSecret": {
                            "name": credentials_secret,
                            "key": INTEGRATION_CLIENT_SECRET_KEY,
                        },
                        "tokenUrl": token_url,
                    },
                }
            ],
            "serviceMonitorNamespaceSelector": {
                "matchLabels": {"kubernetes.io/metadata.name": namespace}
            },
            "serviceMonitorSelector": {},
            "podMonitorSelector": {},
            "serviceAccountName": PROMETHEUS_SERVICE_ACCOUNT,
            "resources": {"requests": {"memory": PROMETHEUS_MEMORY_REQUEST}},
        },
    }
