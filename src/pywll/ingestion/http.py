"""Current-conditions polling.

The HTTP snapshot is the base view of the weather state. One poll loop runs
per discovered device; it is replaced, never duplicated, when a new device
is found and it stops as soon as the device is lost.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from pywll._transport import Transport
from pywll.config import WllConfig
from pywll.exceptions import PollError, WllProtocolError, WllTransportError
from pywll.models.conditions import ConditionsSnapshot
from pywll.models.device import DeviceHandle
from pywll.rain import convert_rain_fields
from pywll.state.context import FusionContext

_logger = logging.getLogger(__name__)


async def fetch_current_conditions(
    *,
    config: WllConfig,
    transport: Transport,
    device: DeviceHandle,
) -> ConditionsSnapshot:
    """Fetch a snapshot and convert every record's rain counts to inches."""
    try:
        raw = await transport.get_json(device, config.conditions_path)
        snapshot = ConditionsSnapshot.from_api(raw)
    except (WllTransportError, WllProtocolError) as exc:
        raise PollError(f"Polling {device.label} failed: {exc}") from exc

    return snapshot.with_conditions([convert_rain_fields(record) for record in snapshot.conditions])


class HttpPoller:
    """Periodically replaces the base snapshot while a device is found."""

    def __init__(
        self,
        *,
        config: WllConfig,
        context: FusionContext,
        transport: Transport,
        on_snapshot: Callable[[ConditionsSnapshot, DeviceHandle], None],
    ) -> None:
        self._config = config
        self._context = context
        self._transport = transport
        self._on_snapshot = on_snapshot
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self, device: DeviceHandle, generation: int) -> bool:
        """Run one poll. Returns True when the base snapshot was replaced."""
        if not self._context.is_current(generation):
            return False

        _logger.debug("Polling current conditions from %s", device.label)
        try:
            snapshot = await fetch_current_conditions(config=self._config, transport=self._transport, device=device)
        except PollError as exc:
            _logger.warning("%s; keeping previous snapshot", exc)
            return False

        # The device may have been lost while the request was in flight.
        if not self._context.is_current(generation):
            _logger.debug("Discarding snapshot from %s: device no longer current", device.label)
            return False

        self._context.base = snapshot
        self._on_snapshot(snapshot, device)
        return True

    def start(self, device: DeviceHandle, generation: int) -> None:
        self.stop()
        self._task = asyncio.create_task(self._run(device, generation), name=f"pywll-poll-{generation}")

    def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def wait_stopped(self) -> None:
        task = self._task
        self.stop()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self, device: DeviceHandle, generation: int) -> None:
        while self._context.is_current(generation):
            try:
                await self.poll_once(device, generation)
            except Exception:
                _logger.warning("Unexpected error in poll loop for %s", device.label, exc_info=True)
            await asyncio.sleep(self._config.poll_interval)
