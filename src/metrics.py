"""Prometheus metrics for the add-on operator."""

from prometheus_client import Counter, Histogram, Gauge, Info

from models import ResourceKind

# Reconciliation metrics
RECONCILE_TOTAL = Counter(
    "starburst_addon_operator_reconcile_total",
    "Total number of reconciliations by outcome",
    ["outcome"],
)

RECONCILE_DURATION = Histogram(
    "starburst_addon_operator_reconcile_duration_seconds",
    "Time spent in reconciliation",
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

RECONCILE_IN_PROGRESS = Gauge(
    "starburst_addon_operator_reconcile_in_progress",
    "Number of reconciliations currently in progress",
)

# Dependent resource metrics
RESOURCES_CREATED = Counter(
    "starburst_addon_operator_resources_created_total",
    "Total number of dependent resource creations",
    ["kind", "status"],
)

# Cluster API metrics
STORE_API_CALLS = Counter(
    "starburst_addon_operator_store_api_calls_total",
    "Total number of Kubernetes API calls",
    ["kind", "operation", "status"],
)

STORE_API_DURATION = Histogram(
    "starburst_addon_operator_store_api_duration_seconds",
    "Time spent in Kubernetes API calls",
    ["kind", "operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Operator info
OPERATOR_INFO = Info(
    "starburst_addon_operator",
    "Information about the add-on operator",
)

OUTCOMES = ["ready", "requeue", "requeue_with_error", "done", "failed", "cancelled"]


def set_operator_info(version: str, addon: str) -> None:
    """Set operator info labels."""
    OPERATOR_INFO.info({"version": version, "addon": addon})


def init_metrics() -> None:
    """Initialize all metrics with zero values.

    Prometheus metrics with labels don't appear until used.
    This ensures all metrics are visible immediately at startup.
    """
    RECONCILE_IN_PROGRESS.set(0)
    for outcome in OUTCOMES:
        RECONCILE_TOTAL.labels(outcome=outcome)

    for kind in ResourceKind:
        for status in ("success", "error"):
            RESOURCES_CREATED.labels(kind=kind.kind, status=status)
        for operation in ("get", "create"):
            STORE_API_DURATION.labels(kind=kind.kind, operation=operation)
