"""Normalization helpers.

Centralizes defensive parsing of device values.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def normalize_timestamp_seconds(value: Any) -> float | None:
    """Normalize device timestamps to epoch seconds.

    - Empty/missing -> None
    - <= 0 -> None
    - Milliseconds (> 1e11) -> seconds
    """

    ts = safe_float(value)
    if ts is None or ts <= 0:
        return None
    if ts > 1e11:
        ts /= 1000.0
    return ts


def scale_code(value: Any) -> int | None:
    """Return *value* as an integral ``rain_size`` code, or None.

    Non-integral numbers are not codes; they are returned as None so the
    caller treats them like any other unrecognized code.
    """

    parsed = safe_float(value)
    if parsed is None or not parsed.is_integer():
        return None
    return int(parsed)
