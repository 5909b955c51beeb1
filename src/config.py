"""Configuration for the add-on operator.

Names, namespaces and requeue intervals are passed to the reconciler as an
explicit ``AddonConfig`` so several add-on instances can be reconciled by the
same process without sharing global state.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AddonConfig:
    """Configuration of one reconciler instance."""

    # Name shared by the monitoring stack objects and the cron job
    name: str = "starburst"
    # Namespace for the monitoring stack and cron job; None means the
    # namespace of the watched Addon
    monitoring_namespace: str | None = None
    cluster_version_name: str = "version"
    parameters_secret_name: str = "addon-managed-starburst-parameters"
    license_secret_name: str = "starburst-license"
    integration_secret_name: str = "addon"

    short_requeue_seconds: float = 5.0
    resync_interval_seconds: float = 60.0
    error_backoff_seconds: float = 30.0

    def __post_init__(self) -> None:
        for attr in (
            "short_requeue_seconds",
            "resync_interval_seconds",
            "error_backoff_seconds",
        ):
            if getattr(self, attr) <= 0:
                raise ValueError(f"{attr} must be positive")

    def monitoring_namespace_for(self, request_namespace: str) -> str:
        """Namespace the monitoring stack lives in for a given Addon."""
        return self.monitoring_namespace or request_namespace

    @classmethod
    def from_env(cls) -> "AddonConfig":
        """Load from environment variables."""
        defaults = cls()
        return cls(
            name=os.getenv("ADDON_NAME", defaults.name),
            monitoring_namespace=os.getenv("MONITORING_NAMESPACE") or None,
            cluster_version_name=os.getenv(
                "CLUSTER_VERSION_NAME", defaults.cluster_version_name
            ),
            parameters_secret_name=os.getenv(
                "PARAMETERS_SECRET_NAME", defaults.parameters_secret_name
            ),
            license_secret_name=os.getenv(
                "LICENSE_SECRET_NAME", defaults.license_secret_name
            ),
            integration_secret_name=os.getenv(
                "INTEGRATION_SECRET_NAME", defaults.integration_secret_name
            ),
            short_requeue_seconds=float(
                os.getenv("SHORT_REQUEUE_SECONDS", str(defaults.short_requeue_seconds))
            ),
            resync_interval_seconds=float(
                os.getenv(
                    "RESYNC_INTERVAL_SECONDS", str(defaults.resync_interval_seconds)
                )
            ),
            error_backoff_seconds=float(
                os.getenv("ERROR_BACKOFF_SECONDS", str(defaults.error_backoff_seconds))
            ),
        )
