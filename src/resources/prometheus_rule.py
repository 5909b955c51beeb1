"""Alerting and recording rules for the add-on."""

from typing import Any

ALERT_GROUP = "starburst_alert_rules"
RECORDING_GROUP = "starburst_custom_rules"

# (alert, expr, for, severity, summary, description)
ALERTS = [
    (
        "high_starburst_query_mem",
        "starburst_query_mem >= 45158388108",
        "5m",
        "page",
        "High Query Memory",
        "High average memory used by all queries over a given time period",
    ),
    (
        "high_starburst_heap_mem",
        "starburst_heap_mem >= 45631505600",
        "5m",
        "warn",
        "High Max Heap Memory",
        "The max amount of heap memory configured in the JVM aggregated across "
        "the entire cluster",
    ),
    (
        "high_starburst_max_query_mem",
        "starburst_max_query_mem >= 94489280512",
        "5m",
        "warn",
        "High Heap Memory",
        "High amount of heap memory used by the JVMs across all cluster nodes",
    ),
    (
        "trino_node_failure",
        "trino_active_nodes <= 1",
        "5m",
        "page",
        "Trino node failure",
        "An active trino node went down",
    ),
    (
        "high_starburst_max_heap_mem",
        "starburst_max_heap_mem >= 94489280512",
        "5m",
        "acknowledged",
        "High Max Heap Memory Alert",
        "The max amount of heap memory configured in the JVM aggregated across "
        "the entire cluster",
    ),
    (
        "starburst_instance_down",
        'count(up{endpoint="metrics"}) != 3',
        "5m",
        "page",
        "Starburst instance down",
        "The pods churned",
    ),
    (
        "high_thread_count",
        "sum(thread_count) > 400",
        "5m",
        "page",
        "High Thread Count",
        "High Thread Count",
    ),
    (
        "JvmMemoryFillingUp",
        '(sum by (instance)(jvm_memory_bytes_used{area="heap"}) / '
        'sum by (instance)(jvm_memory_bytes_max{area="heap"})) * 100 > 80',
        "2m",
        "page",
        "JVM memory filling up (instance {{ $labels.instance }})",
        "JVM memory is filling up (> 80%)\n  VALUE = {{ $value }}\n"
        "  LABELS = {{ $labels }}",
    ),
    (
        "starburst_failed_queries",
        "failed_queries >= 4",
        "5m",
        "page",
        "Queries are failing",
        "In the last 5 mins the failed queries have risen",
    ),
]

RECORDS = [
    ("starburst_query_mem", 'avg_over_time(jvm_memory_bytes_used{endpoint="metrics"}[5m])'),
    ("starburst_max_query_mem", 'jvm_memory_bytes_max{endpoint="metrics", area="heap"}'),
    ("starburst_heap_mem", 'jvm_memory_bytes_used{endpoint="metrics",area="heap"}'),
    ("starburst_max_heap_mem", 'jvm_memory_bytes_max{endpoint="metrics",area="heap"}'),
]


def build_prometheus_rule(
    name: str, namespace: str, labels: dict[str, str]
) -> dict[str, Any]:
    """Build the PrometheusRule loaded by the add-on's Prometheus.

    ``labels`` must match the Prometheus ``ruleSelector``.
    """
    alert_rules = [
        {
            "alert": alert,
            "expr": expr,
            "for": duration,
            "annotations": {
                "summary": summary,
                "severity": severity,
                "description": description,
            },
        }
        for alert, expr, duration, severity, summary, description in ALERTS
    ]
    recording_rules = [{"record": record, "expr": expr} for record, expr in RECORDS]

    return {
        "apiVersion": "monitoring.coreos.com/v1",
        "kind": "PrometheusRule",
        "metadata": {"name": name, "namespace": namespace, "labels": dict(labels)},
        "spec": {
            "groups": [
                {"name": ALERT_GROUP, "rules": alert_rules},
                {"name": RECORDING_GROUP, "rules": recording_rules},
            ]
        },
    }
