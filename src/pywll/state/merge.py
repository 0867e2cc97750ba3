"""Base/overlay merge.

The HTTP snapshot is the complete picture; a UDP overlay carries fresher
values for a handful of fields. Merging never edits either input: the base
is deep-copied and only :data:`pywll._constants.OVERLAY_FIELDS` present in
the overlay record are written over it. A key missing from the overlay
record keeps the base value, an explicit ``None`` replaces it.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from typing import Any

from pywll._constants import OVERLAY_FIELDS, SCALE_CODE_FIELD, SUBSYSTEM_ID_FIELD
from pywll.rain import convert_rain_fields


def _records(snapshot: Mapping[str, Any] | None) -> list[Any]:
    if not snapshot:
        return []
    conditions = snapshot.get("conditions")
    return conditions if isinstance(conditions, list) else []


def match_subsystems(
    base_records: list[Any],
    overlay_records: list[Any],
) -> Iterator[tuple[int, int]]:
    """Yield ``(base_index, overlay_index)`` pairs describing the same subsystem.

    Records are matched by ``lsid``. An overlay record without one falls back
    to its list position; an ``lsid`` the base does not know is skipped when
    the base carries identifiers at all.
    """
    by_id: dict[Any, int] = {}
    for index, record in enumerate(base_records):
        if isinstance(record, Mapping) and record.get(SUBSYSTEM_ID_FIELD) is not None:
            by_id.setdefault(record[SUBSYSTEM_ID_FIELD], index)

    for overlay_index, record in enumerate(overlay_records):
        if not isinstance(record, Mapping):
            continue
        subsystem_id = record.get(SUBSYSTEM_ID_FIELD)
        if subsystem_id is not None and subsystem_id in by_id:
            yield by_id[subsystem_id], overlay_index
        elif subsystem_id is not None and by_id:
            continue
        elif overlay_index < len(base_records) and isinstance(base_records[overlay_index], Mapping):
            yield overlay_index, overlay_index


def merge(
    base: Mapping[str, Any] | None,
    overlay: Mapping[str, Any] | None,
) -> dict[str, Any] | None:
    """Combine the latest base snapshot with the latest overlay.

    Without a base the overlay stands alone (as a deep copy).
    """
    if not base:
        return copy.deepcopy(dict(overlay)) if overlay is not None else None

    merged: dict[str, Any] = copy.deepcopy(dict(base))
    merged_records = _records(merged)
    overlay_records = _records(overlay)

    for base_index, overlay_index in match_subsystems(merged_records, overlay_records):
        target = merged_records[base_index]
        source = overlay_records[overlay_index]
        for field in OVERLAY_FIELDS:
            if field in source:
                target[field] = copy.deepcopy(source[field])
    return merged


def convert_overlay(
    overlay: Mapping[str, Any] | None,
    base: Mapping[str, Any] | None,
) -> dict[str, Any] | None:
    """Convert overlay rain counts to inches.

    A UDP record uses its own ``rain_size`` if present, otherwise the scale
    code of the base record describing the same subsystem. Records with no
    known scale code keep their raw counts.
    """
    if overlay is None:
        return None

    converted: dict[str, Any] = copy.deepcopy(dict(overlay))
    overlay_records = _records(converted)
    base_records = _records(base)

    fallback_codes: dict[int, Any] = {}
    for base_index, overlay_index in match_subsystems(base_records, overlay_records):
        fallback_codes[overlay_index] = base_records[base_index].get(SCALE_CODE_FIELD)

    for index, record in enumerate(overlay_records):
        if isinstance(record, Mapping):
            overlay_records[index] = convert_rain_fields(record, fallback_codes.get(index))
    return converted
