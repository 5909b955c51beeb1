"""License secret derived from the user parameters secret."""

from typing import Any

from constants import LICENSE_SECRET_KEY
from models import MisconfigurationError
from utils import encode_secret_value


def build_license_secret(name: str, namespace: str, license_key: str) -> dict[str, Any]:
    """Build the license secret mounted by the Starburst deployment.

    Args:
        name: Secret name
        namespace: Namespace of the watched Addon
        license_key: Decoded license from the user parameters secret

    Raises:
        MisconfigurationError: if the license is empty
    """
    if not license_key:
        raise MisconfigurationError("license value is empty")

    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "type": "Opaque",
        "data": {LICENSE_SECRET_KEY: encode_secret_value(license_key)},
    }
