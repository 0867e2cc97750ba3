"""Fusion service.

Wires discovery, lease renewal, HTTP polling, the UDP listener and the
broadcaster around one :class:`FusionContext`::

    DeviceLocator -> RealtimeLease + HttpPoller -> UdpListener
    each snapshot/datagram -> merge -> Broadcaster

Losing the device stops the poller and the lease loop, closes the listener
and clears the merge baseline.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from pywll._transport import DeviceTransport, Transport
from pywll.broadcast import Broadcaster
from pywll.config import WllConfig
from pywll.discovery import BrowserFactory, DeviceLocator
from pywll.exceptions import SocketBindError, WllError
from pywll.ingestion.http import HttpPoller
from pywll.ingestion.lease import RealtimeLease
from pywll.ingestion.udp import EndpointFactory, UdpListener
from pywll.models.conditions import ConditionsSnapshot
from pywll.models.device import DeviceHandle, Lease
from pywll.models.envelope import PushEnvelope
from pywll.state.context import FusionContext
from pywll.state.events import IngestionSource
from pywll.state.merge import convert_overlay, merge

_logger = logging.getLogger(__name__)


class WeatherFusionService:
    """Discovers the device and keeps subscribers fed with merged state.

    Usage::

        async with WeatherFusionService(config) as service:
            service.broadcaster.add(websocket)
            ...
    """

    def __init__(
        self,
        config: WllConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        broadcaster: Broadcaster | None = None,
        browser_factory: BrowserFactory | None = None,
        endpoint_factory: EndpointFactory | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._browser_factory = browser_factory
        self._endpoint_factory = endpoint_factory
        self.context = FusionContext()
        self.broadcaster = broadcaster or Broadcaster(send_timeout=config.send_timeout)
        self._pending: set[asyncio.Task[Any]] = set()
        self._locator: DeviceLocator | None = None
        self._poller: HttpPoller | None = None
        self._lease: RealtimeLease | None = None
        self._listener: UdpListener | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> WeatherFusionService:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = DeviceTransport(self._http_session, timeout=self._config.http_timeout)
        self._build_components(self._transport)
        self.locator.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _build_components(self, transport: Transport) -> None:
        self._poller = HttpPoller(
            config=self._config,
            context=self.context,
            transport=transport,
            on_snapshot=self._on_base_snapshot,
        )
        self._lease = RealtimeLease(
            config=self._config,
            context=self.context,
            transport=transport,
            on_lease=self._on_lease,
        )
        self._listener = UdpListener(
            context=self.context,
            on_overlay=self._on_overlay,
            bind_host=self._config.udp_bind_host,
            endpoint_factory=self._endpoint_factory,
        )
        self._locator = DeviceLocator(
            config=self._config,
            context=self.context,
            on_found=self._on_device_found,
            on_lost=self._on_device_lost,
            browser_factory=self._browser_factory,
        )

    async def close(self) -> None:
        if self._locator is not None:
            await self._locator.stop()
        if self._poller is not None:
            await self._poller.wait_stopped()
        if self._lease is not None:
            await self._lease.wait_stopped()
        if self._listener is not None:
            self._listener.close()
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Component access
    # ------------------------------------------------------------------

    @property
    def locator(self) -> DeviceLocator:
        return self._require(self._locator)

    @property
    def poller(self) -> HttpPoller:
        return self._require(self._poller)

    @property
    def lease(self) -> RealtimeLease:
        return self._require(self._lease)

    @property
    def listener(self) -> UdpListener:
        return self._require(self._listener)

    @staticmethod
    def _require(component: Any) -> Any:
        if component is None:
            raise WllError("Service not started. Use 'async with WeatherFusionService(...) as service:'")
        return component

    def _spawn(self, coro: Any, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    # ------------------------------------------------------------------
    # Device lifecycle
    # ------------------------------------------------------------------

    def _on_device_found(self, device: DeviceHandle, generation: int) -> None:
        self.lease.start(device, generation)
        self.poller.start(device, generation)

    def _on_device_lost(self, device: DeviceHandle) -> None:
        _logger.info("Stopping ingestion for %s", device.label)
        self.poller.stop()
        self.lease.stop()
        self.listener.close()

    def _on_lease(self, lease: Lease, generation: int) -> None:
        self._spawn(self._bind_listener(lease.port, generation), name=f"pywll-bind-{lease.port}")

    async def _bind_listener(self, port: int, generation: int) -> None:
        if not self.context.is_current(generation):
            return
        try:
            await self.listener.bind(port)
        except SocketBindError as exc:
            _logger.error("%s; listener stays unbound until the next lease renewal", exc)
            return
        if not self.context.is_current(generation):
            self.listener.close()

    # ------------------------------------------------------------------
    # Ingestion -> merge -> broadcast
    # ------------------------------------------------------------------

    def merged_state(self, origin: IngestionSource) -> dict[str, Any] | None:
        """Merge the current base and overlay as seen by an *origin* event.

        After an HTTP poll an overlay older than the new base is ignored so
        that stale UDP values do not mask the fresh snapshot.
        """
        base = self.context.base
        overlay = self.context.overlay
        if origin is IngestionSource.HTTP and base is not None and overlay is not None:
            if overlay.ts is not None and base.ts is not None and overlay.ts < base.ts:
                overlay = None

        base_state = base.state() if base is not None else None
        overlay_state = convert_overlay(overlay.state(), base_state) if overlay is not None else None
        return merge(base_state, overlay_state)

    def _on_base_snapshot(self, snapshot: ConditionsSnapshot, device: DeviceHandle) -> None:
        self._publish(IngestionSource.HTTP, device.label)

    def _on_overlay(self, overlay: ConditionsSnapshot, source: str) -> None:
        self._publish(IngestionSource.UDP, source)

    def _publish(self, origin: IngestionSource, source: str) -> None:
        envelope = PushEnvelope(
            source=f"{source} ({origin.label})",
            data=self.merged_state(origin),
            data_source=origin,
        )
        self._spawn(self.broadcaster.publish(envelope), name=f"pywll-publish-{origin}")
