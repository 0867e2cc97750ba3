"""DNS-SD discovery of the WeatherLink Live.

:class:`ZeroconfBrowser` wraps the threaded ``zeroconf`` browser and pushes
up/down events onto the asyncio loop. :class:`DeviceLocator` is the state
machine on top of it::

    SEARCHING --up--> FOUND --down--> SEARCHING

A discovery attempt that finds nothing within ``discovery_timeout`` is
abandoned and retried after ``discovery_backoff``, forever.
"""

from __future__ import annotations

import asyncio
import contextlib
import ipaddress
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol

from zeroconf import ServiceBrowser, ServiceStateChange, Zeroconf

from pywll._constants import DEFAULT_DEVICE_PORT
from pywll.config import WllConfig
from pywll.exceptions import DiscoveryTimeoutError
from pywll.models.device import DeviceHandle
from pywll.state.context import FusionContext

_logger = logging.getLogger(__name__)


class DiscoveryState(StrEnum):
    SEARCHING = "searching"
    FOUND = "found"


class BrowserRuntime(Protocol):
    @property
    def is_running(self) -> bool: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


BrowserFactory = Callable[
    [asyncio.AbstractEventLoop, Callable[[DeviceHandle], None], Callable[[str], None]],
    BrowserRuntime,
]


def handle_from_service_info(name: str, info: Any) -> DeviceHandle | None:
    """Build a :class:`DeviceHandle` from a resolved ``ServiceInfo``.

    IPv4 addresses are preferred. Returns None when no address resolved.
    """
    if info is None:
        return None

    addresses: list[str] = []
    try:
        addresses = [str(item) for item in info.parsed_addresses() if item]
    except Exception:
        _logger.debug("Could not parse addresses for %s", name, exc_info=True)
    if not addresses:
        return None

    def _is_v4(value: str) -> bool:
        try:
            return ipaddress.ip_address(value).version == 4
        except ValueError:
            return False

    addresses.sort(key=lambda value: not _is_v4(value))
    port = getattr(info, "port", None) or DEFAULT_DEVICE_PORT
    server = getattr(info, "server", None)
    return DeviceHandle(name=name, address=addresses[0], port=int(port), host=server or None)


class ZeroconfBrowser:
    """Threaded zeroconf browser that emits device events onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        service_type: str,
        on_up: Callable[[DeviceHandle], None],
        on_down: Callable[[str], None],
        resolve_timeout: float = 3.0,
    ) -> None:
        self._loop = loop
        self._service_type = service_type
        self._on_up = on_up
        self._on_down = on_down
        self._resolve_timeout_ms = int(resolve_timeout * 1000)
        self._zeroconf: Zeroconf | None = None
        self._browser: ServiceBrowser | None = None

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    def start(self) -> None:
        """Start browsing. Blocking; call from an executor."""
        self.stop()
        _logger.info("Starting DNS-SD discovery for %s", self._service_type)
        zc = Zeroconf()
        self._zeroconf = zc
        self._browser = ServiceBrowser(zc, self._service_type, handlers=[self._on_service_state_change])

    def stop(self) -> None:
        """Stop browsing and release the zeroconf instance. Blocking."""
        browser = self._browser
        zc = self._zeroconf
        self._browser = None
        self._zeroconf = None
        try:
            if browser is not None:
                browser.cancel()
        finally:
            if zc is not None:
                zc.close()
                _logger.debug("DNS-SD discovery stopped")

    def _on_service_state_change(
        self,
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        state_change: ServiceStateChange,
    ) -> None:
        if state_change is ServiceStateChange.Removed:
            self._loop.call_soon_threadsafe(self._on_down, name)
            return

        try:
            info = zeroconf.get_service_info(service_type, name, timeout=self._resolve_timeout_ms)
        except Exception:
            _logger.debug("Resolving %s failed", name, exc_info=True)
            return
        handle = handle_from_service_info(name, info)
        if handle is None:
            _logger.debug("Service %s resolved without an address", name)
            return
        self._loop.call_soon_threadsafe(self._on_up, handle)


class DeviceLocator:
    """Tracks the single current device and reports found/lost transitions.

    ``on_found`` never fires twice without an ``on_lost`` in between, and
    ``on_lost`` never fires without a prior ``on_found``.
    """

    def __init__(
        self,
        *,
        config: WllConfig,
        context: FusionContext,
        on_found: Callable[[DeviceHandle, int], None],
        on_lost: Callable[[DeviceHandle], None],
        browser_factory: BrowserFactory | None = None,
    ) -> None:
        self._config = config
        self._context = context
        self._on_found = on_found
        self._on_lost = on_lost
        self._browser_factory = browser_factory or self._default_browser
        self._browser: BrowserRuntime | None = None
        self._state = DiscoveryState.SEARCHING
        self._current: DeviceHandle | None = None
        self._found = asyncio.Event()
        self._lost = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> DiscoveryState:
        return self._state

    @property
    def device(self) -> DeviceHandle | None:
        return self._current

    def _default_browser(
        self,
        loop: asyncio.AbstractEventLoop,
        on_up: Callable[[DeviceHandle], None],
        on_down: Callable[[str], None],
    ) -> BrowserRuntime:
        return ZeroconfBrowser(loop=loop, service_type=self._config.service_type, on_up=on_up, on_down=on_down)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name="pywll-discovery")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._stop_browser()

    async def _run(self) -> None:
        while True:
            await self._ensure_browser()
            if self._state is DiscoveryState.SEARCHING:
                try:
                    await self.wait_found(self._config.discovery_timeout)
                except DiscoveryTimeoutError as exc:
                    _logger.info("%s, will retry in %.0f seconds", exc, self._config.discovery_backoff)
                    await self._stop_browser()
                    await asyncio.sleep(self._config.discovery_backoff)
                    continue
            await self._lost.wait()

    async def wait_found(self, timeout: float) -> DeviceHandle:
        """Wait until a device is found.

        Raises
        ------
        DiscoveryTimeoutError
            Nothing was found within *timeout* seconds.
        """
        try:
            await asyncio.wait_for(self._found.wait(), timeout)
        except TimeoutError as exc:
            raise DiscoveryTimeoutError(f"No WeatherLink Live device found after {timeout:.0f} seconds") from exc
        assert self._current is not None  # noqa: S101
        return self._current

    async def _ensure_browser(self) -> None:
        if self._browser is not None and self._browser.is_running:
            return
        loop = asyncio.get_running_loop()
        browser = self._browser_factory(loop, self.handle_up, self.handle_down)
        try:
            await loop.run_in_executor(None, browser.start)
        except Exception:
            _logger.warning("Starting DNS-SD browser failed", exc_info=True)
            return
        self._browser = browser

    async def _stop_browser(self) -> None:
        browser = self._browser
        self._browser = None
        if browser is None:
            return
        try:
            await asyncio.get_running_loop().run_in_executor(None, browser.stop)
        except Exception:
            _logger.debug("Stopping DNS-SD browser failed", exc_info=True)

    # ------------------------------------------------------------------
    # Browser events (always on the event loop)
    # ------------------------------------------------------------------

    def handle_up(self, handle: DeviceHandle) -> None:
        current = self._current
        if current is not None:
            if current == handle:
                _logger.debug("Ignoring repeated advertisement for %s", handle.name)
                return
            _logger.info("Device %s replaced by %s (%s)", current.name, handle.name, handle.label)
            self._lose(current)

        _logger.info("WeatherLink Live found: %s at %s (host=%s)", handle.name, handle.label, handle.host)
        self._current = handle
        self._state = DiscoveryState.FOUND
        generation = self._context.attach_device(handle)
        self._lost.clear()
        self._found.set()
        self._on_found(handle, generation)

    def handle_down(self, name: str) -> None:
        current = self._current
        if current is None or current.name != name:
            _logger.debug("Ignoring removal of unrelated service %s", name)
            return
        _logger.info("WeatherLink Live %s went offline", name)
        self._lose(current)

    def _lose(self, device: DeviceHandle) -> None:
        self._current = None
        self._state = DiscoveryState.SEARCHING
        self._context.detach_device()
        self._found.clear()
        self._lost.set()
        self._on_lost(device)
