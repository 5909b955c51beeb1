"""Kopf handlers for the Addon CRD.

Kopf is the trigger source: it invokes the reconciler when an Addon is
created, updated or resumed after an operator restart, when a managed
dependent it owns is deleted, and on a fixed timer as a level-triggered
backstop. Passes for one Addon never overlap. Reconcile outcomes are
translated into kopf's retry semantics and into the Addon's status.
"""

import copy
import logging
import os
import sys
from pathlib import Path
from typing import Any

# Add src directory to path for imports when run as script by Kopf
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import kopf
from prometheus_client import start_http_server

from config import AddonConfig
from constants import (
    ADDON_GROUP,
    ADDON_PLURAL,
    ADDON_VERSION,
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
)
from metrics import RECONCILE_TOTAL, init_metrics, set_operator_info
from models import (
    AddonRequest,
    Condition,
    ConditionStatus,
    Done,
    Phase,
    ReconcileCancelled,
    ReconcileOutcome,
    RequeueAfter,
    RequeueWithError,
    ResourceKind,
)
from state import state, get_reconciler
from utils import now_iso, set_condition

logger = logging.getLogger(__name__)

# Operator version
OPERATOR_VERSION = "0.1.0"

RESYNC_INTERVAL = state.get_config().resync_interval_seconds

# Kinds the operator creates; deleting one re-triggers its owner
DEPENDENT_KINDS = (
    ResourceKind.SECRET,
    ResourceKind.PROMETHEUS,
    ResourceKind.SERVICE_MONITOR,
    ResourceKind.PROMETHEUS_RULE,
    ResourceKind.CRON_JOB,
)


def classify_outcome(
    outcome: ReconcileOutcome, config: AddonConfig
) -> tuple[str, Phase]:
    """Return the metric label and status phase for an outcome."""
    if isinstance(outcome, RequeueAfter):
        if outcome.error is None and outcome.delay >= config.resync_interval_seconds:
            return "ready", Phase.READY
        return "requeue", Phase.PROVISIONING
    if isinstance(outcome, RequeueWithError):
        return "requeue_with_error", Phase.ERROR
    if isinstance(outcome, Done) and outcome.error is not None:
        return "failed", Phase.ERROR
    return "done", Phase.PENDING


def _outcome_message(outcome: ReconcileOutcome) -> str:
    error = getattr(outcome, "error", None)
    if error is not None:
        return str(error)[:200]
    if isinstance(outcome, RequeueAfter):
        return f"requeue in {outcome.delay:g}s"
    return ""


def record_status(
    outcome: ReconcileOutcome,
    config: AddonConfig,
    status: dict[str, Any],
    patch: kopf.Patch,
) -> None:
    """Write phase, Ready condition and sync time for an outcome."""
    label, phase = classify_outcome(outcome, config)
    message = _outcome_message(outcome)

    new_status: dict[str, Any] = {
        "conditions": copy.deepcopy(status.get("conditions") or [])
    }
    if phase is Phase.READY:
        condition = Condition("Ready", ConditionStatus.TRUE, "Converged", message)
    else:
        condition = Condition("Ready", ConditionStatus.FALSE, phase.value, message)
    set_condition(new_status, condition)

    patch.status["phase"] = phase.value
    patch.status["conditions"] = new_status["conditions"]
    patch.status["lastOutcome"] = label
    patch.status["lastSyncTime"] = now_iso()


def raise_for_outcome(
    outcome: ReconcileOutcome, config: AddonConfig, body: kopf.Body | None = None
) -> None:
    """Hand an outcome back to kopf.

    Delays shorter than the resync interval become a kopf retry; longer
    ones are left to the timer, which fires at least that often.
    """
    if isinstance(outcome, RequeueAfter):
        if outcome.error is not None:
            logger.warning("Backing off: %s", outcome.error)
        if outcome.delay < config.resync_interval_seconds:
            raise kopf.TemporaryError(
                _outcome_message(outcome) or "requeue", delay=outcome.delay
            )
        return

    if isinstance(outcome, RequeueWithError):
        if body is not None:
            kopf.warn(body, reason="ReconcileFailed", message=str(outcome.error)[:200])
        raise kopf.TemporaryError(
            f"Reconcile failed: {outcome.error}", delay=config.error_backoff_seconds
        )

    if isinstance(outcome, Done) and outcome.error is not None:
        if body is not None:
            kopf.warn(body, reason="Misconfigured", message=str(outcome.error)[:200])
        raise kopf.PermanentError(f"Reconcile stopped: {outcome.error}")


def run_reconcile(
    request: AddonRequest, stopped: Any = None
) -> ReconcileOutcome | None:
    """Run one reconcile pass, serialized with other passes for the same Addon.

    Returns None when the pass was cancelled.
    """
    reconciler = get_reconciler()

    with state.addon_lock(request):
        try:
            outcome = reconciler.reconcile(request, stopped)
        except ReconcileCancelled as e:
            logger.info(f"Reconcile of {request} cancelled: {e}")
            RECONCILE_TOTAL.labels(outcome="cancelled").inc()
            return None

    label, _ = classify_outcome(outcome, reconciler.config)
    RECONCILE_TOTAL.labels(outcome=label).inc()
    return outcome


def reconcile_addon(
    namespace: str,
    name: str,
    status: dict[str, Any],
    patch: kopf.Patch,
    body: kopf.Body | None = None,
    stopped: Any = None,
) -> None:
    """Run one reconcile pass and report its outcome to kopf."""
    outcome = run_reconcile(AddonRequest(namespace=namespace, name=name), stopped)
    if outcome is None:
        return

    config = get_reconciler().config
    record_status(outcome, config, status, patch)
    raise_for_outcome(outcome, config, body)


def owner_request(body: dict[str, Any]) -> AddonRequest | None:
    """Return the Addon owning a dependent resource, if it has one."""
    metadata = body.get("metadata") or {}
    namespace = metadata.get("namespace")
    if not namespace:
        return None
    for owner in metadata.get("ownerReferences") or []:
        if (
            owner.get("kind") == ResourceKind.ADDON.kind
            and owner.get("apiVersion") == ResourceKind.ADDON.api_version
            and owner.get("name")
        ):
            return AddonRequest(namespace=namespace, name=owner["name"])
    return None


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure operator settings on startup."""
    # Reduce logging noise
    settings.posting.level = logging.WARNING
    # Set watching namespace - explicit cluster-wide or specific namespace
    # Can be overridden by WATCH_NAMESPACE env var
    watch_namespace = os.environ.get("WATCH_NAMESPACE", "")
    if watch_namespace:
        settings.watching.namespaces = [watch_namespace]
    else:
        settings.watching.clusterwide = True

    # Start Prometheus metrics server
    metrics_port = int(os.environ.get("METRICS_PORT", "9090"))
    try:
        start_http_server(metrics_port)
        logger.info("Prometheus metrics server started on port %d", metrics_port)
    except OSError as e:
        logger.warning("Failed to start metrics server on port %d: %s", metrics_port, e)

    config = state.get_config()
    init_metrics()
    set_operator_info(OPERATOR_VERSION, config.name)

    logger.info("Add-on operator started (version %s): %s", OPERATOR_VERSION, config)


@kopf.on.cleanup()
def cleanup(**_: Any) -> None:
    """Clean up resources on operator shutdown."""
    logger.info("Add-on operator shutting down")
    state.close()


@kopf.on.resume(ADDON_GROUP, ADDON_VERSION, ADDON_PLURAL)
@kopf.on.create(ADDON_GROUP, ADDON_VERSION, ADDON_PLURAL)
@kopf.on.update(ADDON_GROUP, ADDON_VERSION, ADDON_PLURAL)
def addon_changed(
    namespace: str,
    name: str,
    status: dict[str, Any],
    patch: kopf.Patch,
    body: kopf.Body,
    **_: Any,
) -> None:
    """Handle Addon creation, updates and operator restarts."""
    logger.info(f"Reconciling Addon {namespace}/{name} after change")
    reconcile_addon(namespace, name, status, patch, body)


@kopf.timer(ADDON_GROUP, ADDON_VERSION, ADDON_PLURAL, interval=RESYNC_INTERVAL)
def resync_addon(
    namespace: str,
    name: str,
    status: dict[str, Any],
    patch: kopf.Patch,
    body: kopf.Body,
    stopped: Any = None,
    **_: Any,
) -> None:
    """Periodic reconciliation to recreate dependents deleted out-of-band."""
    logger.debug(f"Resyncing Addon {namespace}/{name}")
    reconcile_addon(namespace, name, status, patch, body, stopped)


def dependent_changed(event: dict[str, Any], **_: Any) -> None:
    """Re-run the owner's pass when a managed dependent is deleted.

    Status is left to the Addon handlers; a failed pass here is picked up
    again by the resync timer.
    """
    if event.get("type") != "DELETED":
        return
    body = event.get("object") or {}
    request = owner_request(body)
    if request is None:
        return

    metadata = body.get("metadata") or {}
    logger.info(
        f"{body.get('kind')} {metadata.get('namespace')}/{metadata.get('name')} "
        f"deleted, reconciling Addon {request}"
    )
    outcome = run_reconcile(request)
    if outcome is not None:
        logger.info(f"Reconcile of {request} after dependent deletion: {outcome}")


for _kind in DEPENDENT_KINDS:
    kopf.on.event(
        _kind.api_version,
        _kind.plural,
        id=f"dependent-{_kind.plural}",
        labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
    )(dependent_changed)


@kopf.on.event(ADDON_GROUP, ADDON_VERSION, ADDON_PLURAL)
def addon_event(event: dict[str, Any], namespace: str, name: str, **_: Any) -> None:
    """Release the per-Addon lock once an Addon is gone."""
    if event.get("type") == "DELETED":
        state.forget_addon(AddonRequest(namespace=namespace, name=name))


def main() -> None:
    """Entry point for running the operator."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Kopf will be run via the CLI, but this allows direct invocation for testing
    logger.info("Starting add-on operator...")
    logger.info("Use 'kopf run src/handlers.py' to run the operator")
    sys.exit(0)


if __name__ == "__main__":
    main()
