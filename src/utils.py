"""Utility functions for the add-on operator."""

import base64
import binascii
import datetime
from dataclasses import replace
from typing import Any

from models import Condition


def now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.datetime.now(datetime.UTC).isoformat()


def encode_secret_value(value: str) -> str:
    """Encode a plain string for a Secret's ``data`` field."""
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def decode_secret_value(secret: dict[str, Any], key: str) -> str | None:
    """Read a decoded value from a Secret's ``data`` (or ``stringData``).

    Returns None if the key is missing or its value is not valid base64.
    """
    string_data = secret.get("stringData") or {}
    if key in string_data:
        return string_data[key]

    raw = (secret.get("data") or {}).get(key)
    if raw is None:
        return None
    try:
        return base64.b64decode(raw, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def set_condition(status: dict[str, Any], condition: Condition) -> None:
    """Set or update a condition in the status conditions list.

    The transition time is kept when the condition's status is unchanged.
    """
    conditions: list[dict[str, str]] = status.setdefault("conditions", [])

    for existing in conditions:
        if existing["type"] == condition.type:
            transition_time = existing.get("lastTransitionTime", "")
            if existing["status"] != condition.status.value or not transition_time:
                transition_time = condition.last_transition_time or now_iso()
            existing.update(
                replace(condition, last_transition_time=transition_time).to_dict()
            )
            return

    if not condition.last_transition_time:
        condition = replace(condition, last_transition_time=now_iso())
    conditions.append(condition.to_dict())
