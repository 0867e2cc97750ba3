"""Real-time broadcast lease.

The WeatherLink Live only broadcasts UDP after a ``real_time`` request and
stops once the requested duration elapses. The lease is re-requested on a
fixed interval shorter than that duration; the response names the UDP port.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from pywll._transport import Transport
from pywll.config import WllConfig
from pywll.exceptions import LeaseActivationError, WllTransportError
from pywll.models.device import DeviceHandle, Lease, RealtimeActivation
from pywll.state.context import FusionContext

_logger = logging.getLogger(__name__)


class RealtimeLease:
    """Activates and renews the UDP broadcast for the current device."""

    def __init__(
        self,
        *,
        config: WllConfig,
        context: FusionContext,
        transport: Transport,
        on_lease: Callable[[Lease, int], None],
    ) -> None:
        self._config = config
        self._context = context
        self._transport = transport
        self._on_lease = on_lease
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def activate(self, device: DeviceHandle) -> Lease:
        """Ask *device* to broadcast and return the resulting lease.

        Raises
        ------
        WllTransportError
            The request failed or the body was not JSON.
        LeaseActivationError
            The response did not name a broadcast port.
        """
        raw = await self._transport.get_json(
            device,
            self._config.realtime_path,
            {"duration": self._config.realtime_duration},
        )
        _logger.debug("Real-time response from %s: %s", device.label, raw)
        activation = RealtimeActivation.from_api(raw)
        duration = activation.duration if activation.duration else self._config.realtime_duration
        return Lease(port=activation.broadcast_port, duration=duration)

    async def renew_once(self, device: DeviceHandle, generation: int) -> Lease | None:
        """Activate once.

        On failure the previous lease stays in place until it expires; an
        expired lease is dropped.
        """
        if not self._context.is_current(generation):
            return None

        try:
            lease = await self.activate(device)
        except (WllTransportError, LeaseActivationError) as exc:
            _logger.warning("Real-time activation on %s failed: %s", device.label, exc)
            self._expire_lease(device, generation)
            return None

        if not self._context.is_current(generation):
            _logger.debug("Discarding lease from %s: device no longer current", device.label)
            return None

        previous = self._context.lease
        self._context.lease = lease
        if previous is None or previous.port != lease.port:
            _logger.info("UDP broadcast port for %s: %s", device.label, lease.port)
        self._on_lease(lease, generation)
        return lease

    def _expire_lease(self, device: DeviceHandle, generation: int) -> None:
        lease = self._context.lease
        if lease is None or not self._context.is_current(generation) or not lease.is_expired():
            return
        _logger.warning(
            "Real-time lease on %s for port %s expired at %s; UDP broadcast has stopped",
            device.label,
            lease.port,
            lease.expires_at.isoformat(),
        )
        self._context.lease = None

    def start(self, device: DeviceHandle, generation: int) -> None:
        self.stop()
        self._task = asyncio.create_task(self._run(device, generation), name=f"pywll-lease-{generation}")

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
                await self.renew_once(device, generation)
            except Exception:
                _logger.warning("Unexpected error renewing lease on %s", device.label, exc_info=True)
            await asyncio.sleep(self._config.realtime_renew_interval)
