from __future__ import annotations

import copy

import pytest

from pywll.rain import convert_rain_fields
from pywll.state.merge import convert_overlay, match_subsystems, merge


def _base() -> dict:
    return {
        "did": "001D0A700001",
        "ts": 1_700_000_000,
        "conditions": [
            {"lsid": 1, "wind_speed_last": 3, "wind_dir_last": 90, "rain_24_hr": 0.14, "rain_size": 1, "temp": 61.2},
            {"lsid": 2, "temp_in": 68.5, "hum_in": 45.2},
        ],
    }


def test_no_base_returns_overlay_unchanged() -> None:
    overlay = {"did": "X", "ts": 1, "conditions": [{"wind_speed_last": 5.2}]}

    merged = merge(None, overlay)

    assert merged == overlay
    assert merged is not overlay
    assert merged["conditions"][0] is not overlay["conditions"][0]


def test_no_base_and_no_overlay() -> None:
    assert merge(None, None) is None


def test_no_overlay_returns_copy_of_base() -> None:
    base = _base()

    assert merge(base, None) == base


def test_absent_overlay_field_preserves_base_value() -> None:
    merged = merge(_base(), {"conditions": [{"lsid": 1, "wind_speed_last": 5.2}]})

    record = merged["conditions"][0]
    assert record["wind_speed_last"] == 5.2
    assert record["wind_dir_last"] == 90
    assert record["rain_24_hr"] == 0.14


def test_explicit_null_overlay_field_overwrites() -> None:
    merged = merge(_base(), {"conditions": [{"lsid": 1, "wind_dir_last": None}]})

    assert merged["conditions"][0]["wind_dir_last"] is None


def test_only_overlay_field_set_is_applied() -> None:
    merged = merge(_base(), {"conditions": [{"lsid": 1, "temp": 99.9, "rain_storm_start_at": 1_700_000_100}]})

    record = merged["conditions"][0]
    assert record["temp"] == 61.2
    assert record["rain_storm_start_at"] == 1_700_000_100


def test_inputs_are_not_mutated() -> None:
    base = _base()
    overlay = {"conditions": [{"lsid": 1, "wind_speed_last": 5.2, "rain_24_hr": None}]}
    base_before = copy.deepcopy(base)
    overlay_before = copy.deepcopy(overlay)

    merged = merge(base, overlay)
    merged["conditions"][0]["temp"] = -40

    assert base == base_before
    assert overlay == overlay_before


def test_merge_is_idempotent() -> None:
    base = _base()
    overlay = {"conditions": [{"lsid": 1, "wind_speed_last": 5.2}]}

    assert merge(base, overlay) == merge(base, overlay)


def test_positional_match_without_identifiers() -> None:
    base = {"conditions": [{"wind_speed_last": 1}, {"wind_speed_last": 2}]}
    overlay = {"conditions": [{"wind_speed_last": 10}, {"wind_speed_last": 20}, {"wind_speed_last": 30}]}

    merged = merge(base, overlay)

    assert [r["wind_speed_last"] for r in merged["conditions"]] == [10, 20]


def test_identifier_match_survives_reordering() -> None:
    overlay = {"conditions": [{"lsid": 2, "wind_speed_last": 7.0}, {"lsid": 1, "wind_speed_last": 5.2}]}

    merged = merge(_base(), overlay)

    assert merged["conditions"][0]["wind_speed_last"] == 5.2
    assert merged["conditions"][1]["wind_speed_last"] == 7.0


def test_unknown_identifier_is_skipped() -> None:
    merged = merge(_base(), {"conditions": [{"lsid": 999, "wind_speed_last": 50}]})

    assert merged["conditions"][0]["wind_speed_last"] == 3
    assert "wind_speed_last" not in merged["conditions"][1]


def test_match_subsystems_mixes_identifier_and_position() -> None:
    base_records = [{"lsid": 1}, {"lsid": 2}]
    overlay_records = [{"lsid": 2}, {"wind_speed_last": 1}]

    assert list(match_subsystems(base_records, overlay_records)) == [(1, 0), (1, 1)]


def test_end_to_end_scenario() -> None:
    base = {"conditions": [convert_rain_fields({"wind_speed_last": 3, "rain_24_hr": 14, "rain_size": 1})]}
    overlay = {"conditions": [{"wind_speed_last": 5.2}]}

    merged = merge(base, convert_overlay(overlay, base))

    assert merged["conditions"][0] == {
        "wind_speed_last": 5.2,
        "rain_24_hr": pytest.approx(0.14),
        "rain_size": 1,
    }


# ------------------------------------------------------------------
# convert_overlay
# ------------------------------------------------------------------


def test_overlay_rain_uses_base_scale_code() -> None:
    overlay = {"conditions": [{"lsid": 1, "rain_24_hr": 20}]}

    converted = convert_overlay(overlay, _base())

    assert converted["conditions"][0]["rain_24_hr"] == pytest.approx(0.20)
    assert overlay["conditions"][0]["rain_24_hr"] == 20


def test_overlay_own_scale_code_wins() -> None:
    overlay = {"conditions": [{"lsid": 1, "rain_size": 4, "rain_24_hr": 200}]}

    converted = convert_overlay(overlay, _base())

    assert converted["conditions"][0]["rain_24_hr"] == pytest.approx(0.2)


def test_overlay_without_any_scale_code_keeps_raw_counts() -> None:
    overlay = {"conditions": [{"rain_24_hr": 20}]}

    assert convert_overlay(overlay, None) == overlay


def test_convert_overlay_none() -> None:
    assert convert_overlay(None, _base()) is None
