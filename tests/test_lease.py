from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from pywll.config import WllConfig
from pywll.exceptions import WllTransportError
from pywll.ingestion.lease import RealtimeLease
from pywll.models.device import DeviceHandle, Lease
from pywll.state.context import FusionContext

DEVICE = DeviceHandle(name="WLL._weatherlinklive._tcp.local.", address="192.168.1.20", port=80)


class _FakeTransport:
    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.gate: asyncio.Event | None = None

    async def get_json(self, device: DeviceHandle, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        self.calls.append((endpoint, dict(params or {})))
        if self.gate is not None:
            await self.gate.wait()
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _activation(port: int) -> dict[str, Any]:
    return {"data": {"broadcast_port": port, "duration": 3600}, "error": None}


def _lease(transport: _FakeTransport, context: FusionContext, config: WllConfig | None = None):
    leases: list[tuple[Lease, int]] = []
    lease = RealtimeLease(
        config=config or WllConfig(),
        context=context,
        transport=transport,
        on_lease=lambda value, generation: leases.append((value, generation)),
    )
    return lease, leases


@pytest.mark.asyncio
async def test_activate_requests_one_hour_broadcast() -> None:
    transport = _FakeTransport(_activation(22222))
    lease, _ = _lease(transport, FusionContext())

    result = await lease.activate(DEVICE)

    assert result.port == 22222
    assert result.duration == 3600
    assert transport.calls == [("/v1/real_time", {"duration": 3600})]


@pytest.mark.asyncio
async def test_renewal_records_lease_and_reports_it() -> None:
    context = FusionContext()
    generation = context.attach_device(DEVICE)
    lease, leases = _lease(_FakeTransport(_activation(22222), _activation(22223)), context)

    await lease.renew_once(DEVICE, generation)
    await lease.renew_once(DEVICE, generation)

    assert context.lease is not None
    assert context.lease.port == 22223
    assert [(value.port, gen) for value, gen in leases] == [(22222, generation), (22223, generation)]


@pytest.mark.parametrize(
    "failure",
    [WllTransportError("connection refused", endpoint="/v1/real_time"), {"data": {}, "error": None}],
)
@pytest.mark.asyncio
async def test_failed_renewal_keeps_previous_lease(failure: Any) -> None:
    context = FusionContext()
    generation = context.attach_device(DEVICE)
    lease, leases = _lease(_FakeTransport(_activation(22222), failure), context)

    first = await lease.renew_once(DEVICE, generation)
    second = await lease.renew_once(DEVICE, generation)

    assert first is not None
    assert second is None
    assert context.lease is first
    assert len(leases) == 1


@pytest.mark.asyncio
async def test_renewal_scheduled_after_device_lost_is_a_no_op() -> None:
    context = FusionContext()
    generation = context.attach_device(DEVICE)
    transport = _FakeTransport(_activation(22222))
    lease, leases = _lease(transport, context)
    context.detach_device()

    assert await lease.renew_once(DEVICE, generation) is None
    assert transport.calls == []
    assert context.lease is None
    assert leases == []


@pytest.mark.asyncio
async def test_in_flight_renewal_discarded_when_device_lost() -> None:
    context = FusionContext()
    generation = context.attach_device(DEVICE)
    transport = _FakeTransport(_activation(22222))
    transport.gate = asyncio.Event()
    lease, leases = _lease(transport, context)

    pending = asyncio.create_task(lease.renew_once(DEVICE, generation))
    await asyncio.sleep(0)
    context.detach_device()
    transport.gate.set()

    assert await pending is None
    assert context.lease is None
    assert leases == []


@pytest.mark.asyncio
async def test_renewal_loop_stops_on_device_lost() -> None:
    context = FusionContext()
    generation = context.attach_device(DEVICE)
    transport = _FakeTransport(_activation(22222))
    config = WllConfig(realtime_renew_interval=0.01)
    lease, _ = _lease(transport, context, config)

    lease.start(DEVICE, generation)
    await asyncio.sleep(0.05)
    assert lease.running
    assert len(transport.calls) >= 1

    context.detach_device()
    lease.stop()
    calls = len(transport.calls)
    await asyncio.sleep(0.05)

    assert not lease.running
    assert len(transport.calls) == calls
    assert context.lease is None


@pytest.mark.asyncio
async def test_failed_renewal_drops_expired_lease(caplog: pytest.LogCaptureFixture) -> None:
    context = FusionContext()
    generation = context.attach_device(DEVICE)
    context.lease = Lease(port=22222, duration=3600, activated_at=datetime.now(UTC) - timedelta(hours=2))
    lease, leases = _lease(_FakeTransport(WllTransportError("connection refused")), context)

    with caplog.at_level(logging.WARNING, logger="pywll.ingestion.lease"):
        assert await lease.renew_once(DEVICE, generation) is None

    assert context.lease is None
    assert leases == []
    assert any("expired" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_failed_renewal_keeps_unexpired_lease_without_expiry_warning(caplog: pytest.LogCaptureFixture) -> None:
    context = FusionContext()
    generation = context.attach_device(DEVICE)
    current = Lease(port=22222, duration=3600, activated_at=datetime.now(UTC) - timedelta(minutes=55))
    context.lease = current
    lease, _ = _lease(_FakeTransport(WllTransportError("connection refused")), context)

    with caplog.at_level(logging.WARNING, logger="pywll.ingestion.lease"):
        await lease.renew_once(DEVICE, generation)

    assert context.lease is current
    assert not any("expired" in record.getMessage() for record in caplog.records)
