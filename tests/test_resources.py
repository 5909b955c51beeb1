"""Tests for dependent resource factories."""

import pytest

from models import MisconfigurationError
from resources.cron_job import build_cron_job
from resources.prometheus import build_prometheus
from resources.prometheus_rule import build_prometheus_rule
from resources.secret import build_license_secret
from resources.service_monitor import (
    build_federation_service_monitor,
    build_service_monitor,
    federation_match_params,
)


def prometheus(**overrides):
    kwargs = dict(
        token_url="https://sso.example.com/token",
        remote_write_url="https://metrics.example.com/write",
        cluster_id="cluster-abc",
        credentials_secret="addon",
        rule_labels={"app": "starburst"},
    )
    kwargs.update(overrides)
    return build_prometheus("starburst", "ns", **kwargs)


class TestLicenseSecret:
    """Tests for build_license_secret."""

    def test_encodes_license(self):
        secret = build_license_secret("starburst-license", "ns", "ABC123")

        assert secret["metadata"] == {"name": "starburst-license", "namespace": "ns"}
        assert secret["data"] == {"starburstdata.license": "QUJDMTIz"}

    def test_empty_license(self):
        with pytest.raises(MisconfigurationError):
            build_license_secret("starburst-license", "ns", "")


class TestPrometheus:
    """Tests for build_prometheus."""

    def test_remote_write(self):
        spec = prometheus()["spec"]
        remote_write = spec["remoteWrite"][0]

        assert remote_write["url"] == "https://metrics.example.com/write"
        assert remote_write["oauth2"]["tokenUrl"] == "https://sso.example.com/token"
        assert remote_write["oauth2"]["clientSecret"] == {
            "name": "addon",
            "key": "client-secret",
        }
        assert spec["externalLabels"] == {"cluster_id": "cluster-abc"}

    def test_rule_selector_matches_rule_labels(self):
        spec = prometheus()["spec"]
        rule = build_prometheus_rule("starburst", "ns", {"app": "starburst"})

        assert spec["ruleSelector"]["matchLabels"] == rule["metadata"]["labels"]

    def test_service_monitor_namespace_selector(self):
        selector = prometheus()["spec"]["serviceMonitorNamespaceSelector"]

        assert selector == {"matchLabels": {"kubernetes.io/metadata.name": "ns"}}

    def test_missing_inputs(self):
        with pytest.raises(MisconfigurationError, match="token URL, cluster ID"):
            prometheus(token_url="", cluster_id="")

    def test_deterministic(self):
        assert prometheus() == prometheus()


class TestServiceMonitors:
    """Tests for the ServiceMonitor factories."""

    def test_primary(self):
        monitor = build_service_monitor("starburst", "ns")

        assert monitor["spec"]["namespaceSelector"] == {"matchNames": ["ns"]}
        assert monitor["spec"]["endpoints"] == [{"port": "metrics", "interval": "2s"}]

    def test_federation_scrapes_cluster_monitoring(self):
        monitor = build_federation_service_monitor("starburst-federation", "ns")
        endpoint = monitor["spec"]["endpoints"][0]

        assert monitor["metadata"]["name"] == "starburst-federation"
        assert monitor["spec"]["namespaceSelector"] == {
            "matchNames": ["openshift-monitoring"]
        }
        assert endpoint["path"] == "/federate"
        assert endpoint["params"]["match[]"] == federation_match_params("ns")

    def test_match_params_filter_namespace(self):
        params = federation_match_params("ns")

        assert 'kube_pod_status_phase{namespace="ns"}' in params
        assert "kube_node_status_capacity" in params
        assert len(params) == len(set(params))


class TestPrometheusRule:
    """Tests for build_prometheus_rule."""

    def test_groups(self):
        rule = build_prometheus_rule("starburst", "ns", {"app": "starburst"})
        groups = {g["name"]: g["rules"] for g in rule["spec"]["groups"]}

        assert set(groups) == {"starburst_alert_rules", "starburst_custom_rules"}
        assert all("alert" in r for r in groups["starburst_alert_rules"])
        assert all("record" in r for r in groups["starburst_custom_rules"])

    def test_labels_are_copied(self):
        labels = {"app": "starburst"}
        rule = build_prometheus_rule("starburst", "ns", labels)
        rule["metadata"]["labels"]["extra"] = "x"

        assert labels == {"app": "starburst"}


class TestCronJob:
    """Tests for build_cron_job."""

    def test_mounts_parameters_secret(self):
        cron_job = build_cron_job("starburst", "ns", "addon-managed-starburst-parameters")
        pod_spec = cron_job["spec"]["jobTemplate"]["spec"]["template"]["spec"]

        assert pod_spec["volumes"][0]["secret"]["secretName"] == (
            "addon-managed-starburst-parameters"
        )
        assert pod_spec["restartPolicy"] == "Never"
        assert pod_spec["containers"][0]["command"][-1] == (
            "kubectl apply -f /opt/scripts/starburstenterprise.yaml"
        )
