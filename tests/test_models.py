"""Tests for data models."""

import pytest

from models import (
    AddonRequest,
    ConditionStatus,
    Condition,
    ConvergenceStep,
    ManagedResourceRef,
    PartialCreateFailure,
    ResourceKind,
    StepAction,
    TransientStoreError,
)


class TestResourceKind:
    """Tests for ResourceKind enum."""

    def test_core_api_version(self):
        assert ResourceKind.SECRET.api_version == "v1"

    def test_group_api_version(self):
        assert ResourceKind.PROMETHEUS.api_version == "monitoring.coreos.com/v1"
        assert ResourceKind.CRON_JOB.api_version == "batch/v1"

    def test_cluster_scoped(self):
        assert ResourceKind.CLUSTER_VERSION.namespaced is False
        assert ResourceKind.ADDON.namespaced is True

    def test_service_monitor_and_rule_are_distinct(self):
        assert ResourceKind.SERVICE_MONITOR is not ResourceKind.PROMETHEUS_RULE
        assert ResourceKind.SERVICE_MONITOR.plural == "servicemonitors"


class TestManagedResourceRef:
    """Tests for ManagedResourceRef dataclass."""

    def test_str_namespaced(self):
        ref = ManagedResourceRef(ResourceKind.SECRET, "ns", "license")
        assert str(ref) == "Secret ns/license"

    def test_str_cluster_scoped(self):
        ref = ManagedResourceRef(ResourceKind.CLUSTER_VERSION, None, "version")
        assert str(ref) == "ClusterVersion version"

    def test_hashable(self):
        a = ManagedResourceRef(ResourceKind.SECRET, "ns", "x")
        b = ManagedResourceRef(ResourceKind.SECRET, "ns", "x")
        assert {a: 1}[b] == 1


class TestAddonRequest:
    """Tests for AddonRequest dataclass."""

    def test_str(self):
        assert str(AddonRequest("ns", "starburst")) == "ns/starburst"

    def test_frozen(self):
        request = AddonRequest("ns", "starburst")
        with pytest.raises(AttributeError):
            request.name = "other"  # type: ignore[misc]


class TestConvergenceStep:
    """Tests for ConvergenceStep defaults."""

    def test_fetch_only_defaults(self):
        step = ConvergenceStep(
            name="addon",
            ref=lambda ctx: ManagedResourceRef(ResourceKind.ADDON, "ns", "a"),
        )

        assert step.build is None
        assert step.on_missing is StepAction.DONE
        assert step.on_lookup_error is StepAction.REQUEUE_WITH_ERROR
        assert step.on_created is StepAction.CONTINUE


class TestCondition:
    """Tests for Condition dataclass."""

    def test_to_dict(self):
        condition = Condition(
            type="Ready",
            status=ConditionStatus.TRUE,
            reason="Converged",
            message="All done",
            last_transition_time="2024-01-01T00:00:00+00:00",
        )
        result = condition.to_dict()

        assert result == {
            "type": "Ready",
            "status": "True",
            "reason": "Converged",
            "message": "All done",
            "lastTransitionTime": "2024-01-01T00:00:00+00:00",
        }


class TestExceptions:
    """Tests for the exception taxonomy."""

    def test_store_error_context(self):
        ref = ManagedResourceRef(ResourceKind.SECRET, "ns", "x")
        error = TransientStoreError("boom", ref=ref, operation="get")

        assert error.ref == ref
        assert error.operation == "get"
        assert str(error) == "boom"

    def test_partial_create_failure_message(self):
        error = PartialCreateFailure([ValueError("a"), ValueError("b")])

        assert len(error.errors) == 2
        assert str(error) == "2 dependent resource(s) failed: a; b"
