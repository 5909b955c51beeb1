"""Tests for configuration loading."""

import pytest

from config import AddonConfig

ENV_VARS = [
    "ADDON_NAME",
    "MONITORING_NAMESPACE",
    "CLUSTER_VERSION_NAME",
    "PARAMETERS_SECRET_NAME",
    "LICENSE_SECRET_NAME",
    "INTEGRATION_SECRET_NAME",
    "SHORT_REQUEUE_SECONDS",
    "RESYNC_INTERVAL_SECONDS",
    "ERROR_BACKOFF_SECONDS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


class TestAddonConfig:
    """Tests for AddonConfig."""

    def test_defaults(self):
        config = AddonConfig.from_env()

        assert config == AddonConfig()
        assert config.name == "starburst"
        assert config.monitoring_namespace is None
        assert config.parameters_secret_name == "addon-managed-starburst-parameters"
        assert config.resync_interval_seconds == 60.0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ADDON_NAME", "trino")
        monkeypatch.setenv("MONITORING_NAMESPACE", "monitoring")
        monkeypatch.setenv("SHORT_REQUEUE_SECONDS", "2.5")
        monkeypatch.setenv("RESYNC_INTERVAL_SECONDS", "120")

        config = AddonConfig.from_env()

        assert config.name == "trino"
        assert config.monitoring_namespace == "monitoring"
        assert config.short_requeue_seconds == 2.5
        assert config.resync_interval_seconds == 120.0

    def test_empty_monitoring_namespace_means_request_namespace(self, monkeypatch):
        monkeypatch.setenv("MONITORING_NAMESPACE", "")

        config = AddonConfig.from_env()

        assert config.monitoring_namespace_for("addon-ns") == "addon-ns"

    def test_monitoring_namespace_override(self):
        config = AddonConfig(monitoring_namespace="monitoring")

        assert config.monitoring_namespace_for("addon-ns") == "monitoring"

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("ERROR_BACKOFF_SECONDS", "soon")

        with pytest.raises(ValueError):
            AddonConfig.from_env()

    def test_non_positive_interval(self):
        with pytest.raises(ValueError, match="resync_interval_seconds"):
            AddonConfig(resync_interval_seconds=0)

    def test_instances_are_independent(self):
        a = AddonConfig(name="a", monitoring_namespace="ns-a")
        b = AddonConfig(name="b")

        assert a.monitoring_namespace_for("x") == "ns-a"
        assert b.monitoring_namespace_for("x") == "x"
