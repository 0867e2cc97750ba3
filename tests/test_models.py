"""Tests for payload parsing models."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from pywll.exceptions import DatagramParseError, LeaseActivationError, WllProtocolError
from pywll.models.conditions import ConditionsSnapshot
from pywll.models.device import DeviceHandle, Lease, RealtimeActivation
from pywll.models.envelope import PushEnvelope
from pywll.state.events import IngestionSource

# ------------------------------------------------------------------
# ConditionsSnapshot
# ------------------------------------------------------------------


class TestConditionsSnapshot:
    HTTP_BODY: dict = {
        "data": {
            "did": "001D0A700001",
            "ts": 1_700_000_000,
            "conditions": [
                {"lsid": 48308, "data_structure_type": 1, "temp": 62.7, "rain_storm_start_at": None},
                {"lsid": 48309, "data_structure_type": 4, "temp_in": 68.5},
            ],
        },
        "error": None,
    }

    def test_from_api_unwraps_data(self) -> None:
        snapshot = ConditionsSnapshot.from_api(self.HTTP_BODY)

        assert snapshot.did == "001D0A700001"
        assert snapshot.ts == 1_700_000_000
        assert [r["lsid"] for r in snapshot.conditions] == [48308, 48309]

    def test_from_api_accepts_unwrapped_body(self) -> None:
        snapshot = ConditionsSnapshot.from_api(self.HTTP_BODY["data"])

        assert len(snapshot.conditions) == 2

    def test_null_fields_are_kept(self) -> None:
        snapshot = ConditionsSnapshot.from_api(self.HTTP_BODY)

        record = snapshot.conditions[0]
        assert "rain_storm_start_at" in record
        assert record["rain_storm_start_at"] is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"data": None, "error": {"code": 409}},
            {"data": {"did": "X"}},
            {"data": {"conditions": [1, 2]}},
            ["not", "an", "object"],
        ],
    )
    def test_from_api_rejects_bad_shapes(self, payload: object) -> None:
        with pytest.raises(WllProtocolError):
            ConditionsSnapshot.from_api(payload)

    def test_from_datagram_full_shape(self) -> None:
        snapshot = ConditionsSnapshot.from_datagram(
            {"did": "001D0A700001", "ts": 1_700_000_002, "conditions": [{"lsid": 48308, "wind_speed_last": 5.2}]}
        )

        assert snapshot.conditions == [{"lsid": 48308, "wind_speed_last": 5.2}]
        assert snapshot.ts == 1_700_000_002

    def test_from_datagram_bare_record(self) -> None:
        snapshot = ConditionsSnapshot.from_datagram({"wind_speed_last": 5.2})

        assert snapshot.conditions == [{"wind_speed_last": 5.2}]

    @pytest.mark.parametrize("payload", [[1, 2], "text", 3, {"conditions": "nope"}])
    def test_from_datagram_rejects_bad_shapes(self, payload: object) -> None:
        with pytest.raises(DatagramParseError):
            ConditionsSnapshot.from_datagram(payload)

    def test_millisecond_timestamp_normalized(self) -> None:
        snapshot = ConditionsSnapshot.from_datagram({"ts": 1_700_000_000_000, "conditions": []})

        assert snapshot.ts == 1_700_000_000

    def test_state_is_a_deep_copy(self) -> None:
        snapshot = ConditionsSnapshot.from_api(self.HTTP_BODY)

        state = snapshot.state()
        state["conditions"][0]["temp"] = -40

        assert snapshot.conditions[0]["temp"] == 62.7
        assert state["ts"] == 1_700_000_000
        assert isinstance(state["ts"], int)

    def test_model_carries_only_published_fields(self) -> None:
        snapshot = ConditionsSnapshot.from_api(self.HTTP_BODY)

        assert snapshot.model_dump() == snapshot.state() | {"ts": snapshot.ts}
        assert set(ConditionsSnapshot.model_fields) == {"did", "ts", "conditions"}


# ------------------------------------------------------------------
# Device / lease
# ------------------------------------------------------------------


class TestRealtimeActivation:
    def test_unwraps_data(self) -> None:
        activation = RealtimeActivation.from_api({"data": {"broadcast_port": 22222, "duration": 3600}, "error": None})

        assert activation.broadcast_port == 22222
        assert activation.duration == 3600

    def test_accepts_string_port(self) -> None:
        assert RealtimeActivation.from_api({"broadcast_port": "22223"}).broadcast_port == 22223

    @pytest.mark.parametrize("payload", [{"data": {}}, {"data": {"broadcast_port": None}}, {"broadcast_port": 0}, None])
    def test_missing_port_raises(self, payload: object) -> None:
        with pytest.raises(LeaseActivationError):
            RealtimeActivation.from_api(payload)


def test_device_handle_urls() -> None:
    handle = DeviceHandle(name="WLL._weatherlinklive._tcp.local.", address="192.168.1.20", port=80)

    assert handle.base_url == "http://192.168.1.20:80"
    assert handle.label == "192.168.1.20:80"


def test_device_handle_equality_is_by_value() -> None:
    a = DeviceHandle(name="WLL", address="192.168.1.20", port=80)
    b = DeviceHandle(name="WLL", address="192.168.1.20", port=80)
    c = DeviceHandle(name="WLL", address="192.168.1.21", port=80)

    assert a == b
    assert a != c


def test_lease_expiry() -> None:
    activated = datetime(2026, 1, 1, tzinfo=UTC)
    lease = Lease(port=22222, duration=3600, activated_at=activated)

    assert lease.expires_at == activated + timedelta(hours=1)
    assert not lease.is_expired(activated + timedelta(minutes=50))
    assert lease.is_expired(activated + timedelta(minutes=60))


# ------------------------------------------------------------------
# PushEnvelope
# ------------------------------------------------------------------


def test_envelope_wire_shape() -> None:
    envelope = PushEnvelope(
        timestamp=datetime(2026, 1, 1, 12, 0, tzinfo=UTC),
        source="192.168.1.20:80 (HTTP)",
        data={"did": "X", "ts": 1, "conditions": []},
        data_source=IngestionSource.HTTP,
    )

    wire = json.loads(envelope.to_json())

    assert set(wire) == {"timestamp", "source", "data", "dataSource"}
    assert wire["dataSource"] == "http"
    assert wire["source"] == "192.168.1.20:80 (HTTP)"
    assert datetime.fromisoformat(wire["timestamp"].replace("Z", "+00:00")) == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
