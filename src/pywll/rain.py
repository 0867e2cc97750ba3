"""Rain count conversion.

The WeatherLink Live reports rain as bucket-tip counts. ``rain_size`` on the
same condition record selects the collector size, and therefore how much
rain one tip represents. Everything is reduced to inches.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pywll._constants import RAIN_FIELDS, RAIN_SCALE_FACTORS, SCALE_CODE_FIELD
from pywll.ingestion.normalize import safe_float, scale_code

_logger = logging.getLogger(__name__)


def convert_rain_value(count: Any, rain_size: Any) -> Any:
    """Convert a raw tip *count* to inches using the *rain_size* code.

    Returns None when either argument is missing or the count is not a
    number. An unrecognized code logs a warning and returns *count* as-is.
    """
    if count is None or rain_size is None:
        return None

    raw = safe_float(count)
    if raw is None:
        return None

    code = scale_code(rain_size)
    factor = RAIN_SCALE_FACTORS.get(code) if code is not None else None
    if factor is None:
        _logger.warning("Unknown rain_size value: %r, returning raw count", rain_size)
        return count

    return raw * factor


def convert_rain_fields(condition: Mapping[str, Any] | None, rain_size: Any = None) -> Any:
    """Return a copy of *condition* with every rain field converted.

    The record's own ``rain_size`` is used; *rain_size* is the fallback for
    records that do not carry one (UDP records matched to an HTTP record).
    Without a non-zero scale code the input is returned unchanged. Null or absent
    rain fields are left alone and the input is never mutated.
    """
    if not condition:
        return condition

    # A zero code counts as no code.
    code = condition.get(SCALE_CODE_FIELD)
    if code is None or code == 0:
        code = rain_size
    if code is None or code == 0:
        return condition

    converted = dict(condition)
    for field in RAIN_FIELDS:
        value = converted.get(field)
        if value is None:
            continue
        result = convert_rain_value(value, code)
        if result is not None:
            converted[field] = result
    return converted
