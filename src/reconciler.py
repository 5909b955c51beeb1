"""Convergence loop for the Starburst add-on.

One reconcile pass walks a fixed, ordered tuple of ``ConvergenceStep``s.
Each step looks up one resource; fetch-only steps record what they found for
later steps, creating steps build and create their resource when it is
absent. Existing resources are never updated. Steps are ordered by data
dependency: the parameters secret before the license secret derived from it,
the integration secret and cluster version before the Prometheus that
consumes them, and Prometheus before the objects it scrapes and evaluates.

The pass stops early whenever a step's policy says so, handing control back
to the trigger source through the returned ``ReconcileOutcome``.
"""

import logging
import time
from typing import Any, Protocol

import kopf

from config import AddonConfig
from constants import (
    INTEGRATION_REMOTE_WRITE_URL_KEY,
    INTEGRATION_TOKEN_URL_KEY,
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    PARAMETERS_LICENSE_KEY,
)
from metrics import RECONCILE_DURATION, RECONCILE_IN_PROGRESS, RESOURCES_CREATED
from models import (
    AddonRequest,
    AlreadyExistsError,
    Continue,
    ConvergenceStep,
    Done,
    ManagedResourceRef,
    MisconfigurationError,
    OperatorError,
    PartialCreateFailure,
    ReconcileCancelled,
    ReconcileContext,
    ReconcileOutcome,
    RequeueAfter,
    RequeueWithError,
    ResourceKind,
    StepAction,
    StoreError,
)
from resources.cron_job import build_cron_job
from resources.prometheus import build_prometheus
from resources.prometheus_rule import build_prometheus_rule
from resources.secret import build_license_secret
from resources.service_monitor import (
    build_federation_service_monitor,
    build_service_monitor,
)
from store import ClusterStore
from utils import decode_secret_value

logger = logging.getLogger(__name__)

# Step names, also the keys of ReconcileContext.observed
ADDON = "addon"
CLUSTER_VERSION = "cluster-version"
PARAMETERS = "parameters"
LICENSE_SECRET = "license-secret"
INTEGRATION_SECRET = "integration-secret"
PROMETHEUS = "prometheus"
SERVICE_MONITOR = "service-monitor"
FEDERATION_SERVICE_MONITOR = "federation-service-monitor"
PROMETHEUS_RULE = "prometheus-rule"
CRON_JOB = "cron-job"


class StopFlag(Protocol):
    """Anything that reports an external cancellation (threading.Event, kopf)."""

    def is_set(self) -> bool: ...


class Reconciler:
    """Drives the add-on's dependent resources toward their desired state.

    Holds no mutable state between calls: it is safe to call ``reconcile``
    concurrently for different add-ons and repeatedly for the same one.
    """

    def __init__(self, store: ClusterStore, config: AddonConfig | None = None) -> None:
        self.store = store
        self.config = config or AddonConfig()
        self.steps = self._build_steps()

    # -------------------------------------------------------------------------
    # Reconcile loop
    # -------------------------------------------------------------------------

    def reconcile(
        self, request: AddonRequest, stopped: StopFlag | None = None
    ) -> ReconcileOutcome:
        """Run one convergence pass for ``request``.

        Raises:
            ReconcileCancelled: if ``stopped`` is set at a store call boundary
        """
        start_time = time.monotonic()
        RECONCILE_IN_PROGRESS.inc()
        ctx = ReconcileContext(request=request)
        try:
            for step in self.steps:
                outcome = self._run_step(step, ctx, stopped)
                if not isinstance(outcome, Continue):
                    logger.info(
                        "Reconcile of %s stopped at step %s: %s", request, step.name, outcome
                    )
                    return outcome

            if ctx.errors:
                return RequeueWithError(PartialCreateFailure(ctx.errors))

            logger.debug("Addon %s converged", request)
            return RequeueAfter(self.config.resync_interval_seconds)
        finally:
            if ctx.created:
                logger.info(
                    "Reconcile of %s created %s",
                    request,
                    ", ".join(str(ref) for ref in ctx.created),
                )
            RECONCILE_IN_PROGRESS.dec()
            RECONCILE_DURATION.observe(time.monotonic() - start_time)

    def _run_step(
        self,
        step: ConvergenceStep,
        ctx: ReconcileContext,
        stopped: StopFlag | None,
    ) -> ReconcileOutcome:
        """Look up one resource and create it if the step builds it."""
        ref = step.ref(ctx)

        _check_stopped(stopped, ref)
        try:
            existing = self.store.get(ref)
        except StoreError as e:
            logger.warning("Lookup of %s failed: %s", ref, e)
            return self._resolve(step.on_lookup_error, ctx, e)

        if existing is not None:
            ctx.observed[step.name] = existing
            if step.build is not None:
                logger.debug("%s already exists, leaving it untouched", ref)
            return Continue()

        if step.build is None:
            logger.info("%s not found", ref)
            error = None
            if step.on_missing is StepAction.FAIL:
                error = MisconfigurationError(f"required {ref} not found")
            return self._resolve(step.on_missing, ctx, error)

        logger.info("%s not found. Creating...", ref)
        try:
            body = step.build(ctx)
        except MisconfigurationError as e:
            logger.error("Cannot build %s: %s", ref, e)
            return self._resolve(step.on_build_error, ctx, e)

        self._adopt(body, ref, ctx)

        _check_stopped(stopped, ref)
        try:
            self.store.create(ref, body)
        except AlreadyExistsError:
            logger.info("%s was created concurrently, treating it as present", ref)
            return Continue()
        except StoreError as e:
            logger.error("Could not create %s: %s", ref, e)
            RESOURCES_CREATED.labels(kind=ref.kind.kind, status="error").inc()
            return self._resolve(step.on_create_error, ctx, e)

        RESOURCES_CREATED.labels(kind=ref.kind.kind, status="success").inc()
        ctx.created.append(ref)
        logger.info("Created %s", ref)
        return self._resolve(step.on_created, ctx, None)

    def _resolve(
        self,
        action: StepAction,
        ctx: ReconcileContext,
        error: Exception | None,
    ) -> ReconcileOutcome:
        """Translate a step policy into an outcome."""
        if action is StepAction.CONTINUE:
            return Continue()
        if action is StepAction.DONE:
            return Done()
        if action is StepAction.REQUEUE:
            return RequeueAfter(self.config.short_requeue_seconds, error)
        if action is StepAction.RECORD:
            if error is not None:
                ctx.errors.append(error)
            return Continue()
        if error is None:
            error = OperatorError(f"step policy {action.value} without an error")
        if action is StepAction.REQUEUE_WITH_ERROR:
            return RequeueWithError(error)
        return Done(error)

    def _adopt(
        self, body: dict[str, Any], ref: ManagedResourceRef, ctx: ReconcileContext
    ) -> None:
        """Label a dependent resource and make the watched Addon its owner.

        Owner references cannot cross namespaces, so dependents living
        outside the Addon's namespace are only labelled.
        """
        kopf.label(body, {MANAGED_BY_LABEL: MANAGED_BY_VALUE})
        if ref.namespace == ctx.request.namespace:
            kopf.append_owner_reference(body, owner=ctx.observed[ADDON])

    # -------------------------------------------------------------------------
    # Step table
    # -------------------------------------------------------------------------

    def _build_steps(self) -> tuple[ConvergenceStep, ...]:
        cfg = self.config

        def in_request_ns(kind: ResourceKind, name: str):
            return lambda ctx: ManagedResourceRef(kind, ctx.request.namespace, name)

        def in_monitoring_ns(kind: ResourceKind, name: str):
            return lambda ctx: ManagedResourceRef(
                kind, cfg.monitoring_namespace_for(ctx.request.namespace), name
            )

        # Dependents after Prometheus are independent of each other
        sibling = dict(
            on_lookup_error=StepAction.RECORD,
            on_build_error=StepAction.RECORD,
            on_create_error=StepAction.RECORD,
        )

        return (
            ConvergenceStep(
                name=ADDON,
                ref=lambda ctx: ManagedResourceRef(
                    ResourceKind.ADDON, ctx.request.namespace, ctx.request.name
                ),
                on_missing=StepAction.DONE,
            ),
            ConvergenceStep(
                name=CLUSTER_VERSION,
                ref=lambda ctx: ManagedResourceRef(
                    ResourceKind.CLUSTER_VERSION, None, cfg.cluster_version_name
                ),
                on_missing=StepAction.DONE,
            ),
            ConvergenceStep(
                name=PARAMETERS,
                ref=in_request_ns(ResourceKind.SECRET, cfg.parameters_secret_name),
                on_missing=StepAction.REQUEUE,
                on_lookup_error=StepAction.REQUEUE,
            ),
            ConvergenceStep(
                name=LICENSE_SECRET,
                ref=in_request_ns(ResourceKind.SECRET, cfg.license_secret_name),
                build=self._build_license_secret,
                on_created=StepAction.REQUEUE,
            ),
            ConvergenceStep(
                name=INTEGRATION_SECRET,
                ref=in_request_ns(ResourceKind.SECRET, cfg.integration_secret_name),
                on_missing=StepAction.FAIL,
            ),
            ConvergenceStep(
                name=PROMETHEUS,
                ref=in_monitoring_ns(ResourceKind.PROMETHEUS, cfg.name),
                build=self._build_prometheus,
                on_created=StepAction.REQUEUE,
            ),
            ConvergenceStep(
                name=SERVICE_MONITOR,
                ref=in_monitoring_ns(ResourceKind.SERVICE_MONITOR, cfg.name),
                build=self._build_service_monitor,
                **sibling,
            ),
            ConvergenceStep(
                name=FEDERATION_SERVICE_MONITOR,
                ref=in_monitoring_ns(
                    ResourceKind.SERVICE_MONITOR, f"{cfg.name}-federation"
                ),
                build=self._build_federation_service_monitor,
                **sibling,
            ),
            ConvergenceStep(
                name=PROMETHEUS_RULE,
                ref=in_monitoring_ns(ResourceKind.PROMETHEUS_RULE, cfg.name),
                build=self._build_prometheus_rule,
                **sibling,
            ),
            ConvergenceStep(
                name=CRON_JOB,
                ref=in_monitoring_ns(ResourceKind.CRON_JOB, cfg.name),
                build=self._build_cron_job,
                **sibling,
            ),
        )

    # -------------------------------------------------------------------------
    # Factory adapters
    # -------------------------------------------------------------------------

    def _monitoring_namespace(self, ctx: ReconcileContext) -> str:
        return self.config.monitoring_namespace_for(ctx.request.namespace)

    def _rule_labels(self) -> dict[str, str]:
        return {"app": self.config.name}

    def _build_license_secret(self, ctx: ReconcileContext) -> dict[str, Any]:
        license_key = decode_secret_value(ctx.observed[PARAMETERS], PARAMETERS_LICENSE_KEY)
        if license_key is None:
            raise MisconfigurationError(
                f"secret {ctx.request.namespace}/{self.config.parameters_secret_name} "
                f"has no valid '{PARAMETERS_LICENSE_KEY}' field"
            )
        return build_license_secret(
            self.config.license_secret_name, ctx.request.namespace, license_key
        )

    def _build_prometheus(self, ctx: ReconcileContext) -> dict[str, Any]:
        integration = ctx.observed[INTEGRATION_SECRET]
        cluster_version = ctx.observed[CLUSTER_VERSION]
        return build_prometheus(
            self.config.name,
            self._monitoring_namespace(ctx),
            token_url=decode_secret_value(integration, INTEGRATION_TOKEN_URL_KEY) or "",
            remote_write_url=decode_secret_value(
                integration, INTEGRATION_REMOTE_WRITE_URL_KEY
            )
            or "",
            cluster_id=(cluster_version.get("spec") or {}).get("clusterID", ""),
            credentials_secret=self.config.integration_secret_name,
            rule_labels=self._rule_labels(),
        )

    def _build_service_monitor(self, ctx: ReconcileContext) -> dict[str, Any]:
        return build_service_monitor(self.config.name, self._monitoring_namespace(ctx))

    def _build_federation_service_monitor(self, ctx: ReconcileContext) -> dict[str, Any]:
        return build_federation_service_monitor(
            f"{self.config.name}-federation", self._monitoring_namespace(ctx)
        )

    def _build_prometheus_rule(self, ctx: ReconcileContext) -> dict[str, Any]:
        return build_prometheus_rule(
            self.config.name, self._monitoring_namespace(ctx), self._rule_labels()
        )

    def _build_cron_job(self, ctx: ReconcileContext) -> dict[str, Any]:
        return build_cron_job(
            self.config.name,
            self._monitoring_namespace(ctx),
            self.config.parameters_secret_name,
        )


def _check_stopped(stopped: StopFlag | None, ref: ManagedResourceRef) -> None:
    if stopped is not None and stopped.is_set():
        raise ReconcileCancelled(f"reconcile cancelled before accessing {ref}")
