"""Domain models for the add-on operator.

This module defines typed data structures for all operator concepts:
the resource kinds the operator touches, the ordered convergence steps,
the outcomes a reconcile pass can end with, and the exception taxonomy.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# =============================================================================
# Enums for constrained values
# =============================================================================


class Phase(Enum):
    """Add-on lifecycle phase reported in the watched resource's status."""

    PENDING = "Pending"
    PROVISIONING = "Provisioning"
    READY = "Ready"
    ERROR = "Error"


class ConditionStatus(Enum):
    """Kubernetes condition status."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ResourceKind(Enum):
    """Every Kubernetes kind the operator reads or creates."""

    ADDON = ("addon.redhat.com", "v1alpha1", "Addon", "addons", True)
    CLUSTER_VERSION = (
        "config.openshift.io", "v1", "ClusterVersion", "clusterversions", False
    )
    SECRET = ("", "v1", "Secret", "secrets", True)
    CRON_JOB = ("batch", "v1", "CronJob", "cronjobs", True)
    PROMETHEUS = ("monitoring.coreos.com", "v1", "Prometheus", "prometheuses", True)
    SERVICE_MONITOR = (
        "monitoring.coreos.com", "v1", "ServiceMonitor", "servicemonitors", True
    )
    PROMETHEUS_RULE = (
        "monitoring.coreos.com", "v1", "PrometheusRule", "prometheusrules", True
    )

    def __init__(
        self, group: str, version: str, kind: str, plural: str, namespaced: bool
    ) -> None:
        self.group = group
        self.version = version
        self.kind = kind
        self.plural = plural
        self.namespaced = namespaced

    @property
    def api_version(self) -> str:
        """The apiVersion string, e.g. 'monitoring.coreos.com/v1' or 'v1'."""
        return f"{self.group}/{self.version}" if self.group else self.version


class StepAction(Enum):
    """What a convergence step does when one of its conditions occurs."""

    CONTINUE = "continue"
    DONE = "done"
    REQUEUE = "requeue"
    REQUEUE_WITH_ERROR = "requeue_with_error"
    FAIL = "fail"
    RECORD = "record"


# =============================================================================
# Identifiers
# =============================================================================


@dataclass(frozen=True)
class AddonRequest:
    """One reconciliation unit, built fresh for every trigger."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ManagedResourceRef:
    """A (kind, namespace, name) triple identifying a cluster object."""

    kind: ResourceKind
    namespace: str | None
    name: str

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind.kind} {self.namespace}/{self.name}"
        return f"{self.kind.kind} {self.name}"


# =============================================================================
# Reconcile outcomes
# =============================================================================


@dataclass(frozen=True)
class Continue:
    """Proceed to the next step."""


@dataclass(frozen=True)
class RequeueAfter:
    """Stop the pass and re-trigger after ``delay`` seconds.

    ``error`` is set when the stop was caused by an expected, non-fatal
    condition worth surfacing (e.g. an unreadable parameters secret).
    """

    delay: float
    error: Exception | None = None


@dataclass(frozen=True)
class RequeueWithError:
    """Stop the pass and re-trigger per the error backoff policy."""

    error: Exception


@dataclass(frozen=True)
class Done:
    """Stop the pass without forcing a retry.

    Without an error this is the clean stop for an absent watched resource.
    With an error it reports a misconfiguration that retrying cannot fix.
    """

    error: Exception | None = None


ReconcileOutcome = Continue | RequeueAfter | RequeueWithError | Done


# =============================================================================
# Convergence steps
# =============================================================================


@dataclass
class ReconcileContext:
    """Per-invocation scratch space shared by the steps of one pass."""

    request: AddonRequest
    observed: dict[str, dict[str, Any]] = field(default_factory=dict)
    errors: list[Exception] = field(default_factory=list)
    created: list[ManagedResourceRef] = field(default_factory=list)


@dataclass(frozen=True)
class ConvergenceStep:
    """An ordered unit of work in a reconcile pass.

    A step without a ``build`` function only fetches its resource and stores
    it in ``ReconcileContext.observed`` under the step name. A step with one
    creates the resource when it is absent.
    """

    name: str
    ref: Callable[[ReconcileContext], ManagedResourceRef]
    build: Callable[[ReconcileContext], dict[str, Any]] | None = None
    on_missing: StepAction = StepAction.DONE
    on_lookup_error: StepAction = StepAction.REQUEUE_WITH_ERROR
    on_build_error: StepAction = StepAction.FAIL
    on_created: StepAction = StepAction.CONTINUE
    on_create_error: StepAction = StepAction.REQUEUE_WITH_ERROR


# =============================================================================
# Status
# =============================================================================


@dataclass(frozen=True)
class Condition:
    """Kubernetes-style condition."""

    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    last_transition_time: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert to dict for Kubernetes status."""
        return {
            "type": self.type,
            "status": self.status.value,
            "reason": self.reason,
            "message": self.message,
            "lastTransitionTime": self.last_transition_time,
        }


# =============================================================================
# Exceptions
# =============================================================================


class OperatorError(Exception):
    """Base exception for operator errors."""

    pass


class StoreError(OperatorError):
    """A Cluster Store operation failed."""

    def __init__(
        self, message: str, ref: ManagedResourceRef | None = None, operation: str = ""
    ) -> None:
        super().__init__(message)
        self.ref = ref
        self.operation = operation


class TransientStoreError(StoreError):
    """The cluster API was unavailable or answered with an unexpected error."""

    pass


class AlreadyExistsError(StoreError):
    """A create was rejected because the object already exists."""

    pass


class MisconfigurationError(OperatorError):
    """A required externally provided resource or field is missing or malformed."""

    pass


class PartialCreateFailure(OperatorError):
    """One or more independent dependent resources could not be converged."""

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = list(errors)
        details = "; ".join(str(e) for e in self.errors)
        super().__init__(f"{len(self.errors)} dependent resource(s) failed: {details}")


class ReconcileCancelled(OperatorError):
    """The reconcile pass was stopped by an external cancellation signal."""

    pass
