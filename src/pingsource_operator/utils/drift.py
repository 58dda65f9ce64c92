"""Drift detection between desired and live object fields."""

from __future__ import annotations

from typing import Any


def _is_unset(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def is_derivative(desired: Any, live: Any) -> bool:
    """Check that every field set in ``desired`` matches ``live``.

    This is a one-directional comparison: fields that ``desired`` leaves
    unset (absent, None, empty string, empty list or dict) are ignored, dict
    keys only present in ``live`` are ignored, and ``live`` lists may carry
    extra trailing items. Values injected by the API server or other
    controllers therefore never count as drift.
    """
    if _is_unset(desired):
        return True

    if isinstance(desired, dict):
        if not isinstance(live, dict):
            return False
        for key, value in desired.items():
            if _is_unset(value):
                continue
            if key not in live or not is_derivative(value, live[key]):
                return False
        return True

    if isinstance(desired, list):
        if not isinstance(live, list) or len(desired) > len(live):
            return False
        return all(is_derivative(d, l) for d, l in zip(desired, live))

    # bool is an int subclass; keep True distinct from 1
    if isinstance(desired, bool) or isinstance(live, bool):
        return desired is live
    return desired == live


def has_drifted(desired: Any, live: Any) -> bool:
    """Whether the live fields no longer honour the desired fields."""
    return not is_derivative(desired, live)
