"""CronJob that applies the Starburst manifest from the user parameters."""

from typing import Any

CRON_JOB_SCHEDULE = "*/1 * * * *"
CRON_JOB_IMAGE = "cmwylie19/kube-argo-base"
CRON_JOB_SERVICE_ACCOUNT = "addon-operator-controller-manager"
PARAMETERS_MOUNT_PATH = "/opt/scripts"
MANIFEST_FILE = "starburstenterprise.yaml"


def build_cron_job(
    name: str, namespace: str, parameters_secret: str
) -> dict[str, Any]:
    """Build the CronJob that applies the operand manifest.

    The manifest is read from the user parameters secret, mounted read-only.
    """
    return {
        "apiVersion": "batch/v1",
        "kind": "CronJob",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "schedule": CRON_JOB_SCHEDULE,
            "failedJobsHistoryLimit": 3,
            "jobTemplate": {
                "spec": {
                    "template": {
                        "spec": {
                            "serviceAccountName": CRON_JOB_SERVICE_ACCOUNT,
                            "restartPolicy": "Never",
                            "volumes": [
                                {
                                    "name": "user-params",
                                    "secret": {
                                        "secretName": parameters_secret,
                                        "defaultMode": 0o755,
                                    },
                                }
                            ],
                            "containers": [
                                {
                                    "name": "addon",
                                    "image": CRON_JOB_IMAGE,
                                    "command": [
                                        "sh",
                                        "-c",
                                        f"kubectl apply -f "
                                        f"{PARAMETERS_MOUNT_PATH}/{MANIFEST_FILE}",
                                    ],
                                    "volumeMounts": [
                                        {
                                            "name": "user-params",
                                            "mountPath": PARAMETERS_MOUNT_PATH,
                                            "readOnly": True,
                                        }
                                    ],
                                }
                            ],
                        }
                    }
                }
            },
        },
    }
