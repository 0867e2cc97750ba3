"""Real-time UDP broadcast listener.

Binds the port named by the current lease. Every valid datagram becomes the
new overlay. At most one socket is open: a rebind closes the old socket
before opening the new one, and datagrams still queued for a replaced socket
are dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pywll.exceptions import DatagramParseError, SocketBindError
from pywll.models.conditions import ConditionsSnapshot
from pywll.state.context import FusionContext

_logger = logging.getLogger(__name__)

EndpointFactory = Callable[
    [Callable[[], asyncio.DatagramProtocol], tuple[str, int]],
    Awaitable[tuple[asyncio.DatagramTransport, asyncio.DatagramProtocol]],
]


async def _create_endpoint(
    protocol_factory: Callable[[], asyncio.DatagramProtocol],
    local_addr: tuple[str, int],
) -> tuple[asyncio.DatagramTransport, asyncio.DatagramProtocol]:
    loop = asyncio.get_running_loop()
    return await loop.create_datagram_endpoint(protocol_factory, local_addr=local_addr)


def parse_datagram(data: bytes) -> ConditionsSnapshot:
    """Decode one datagram into a snapshot, raising :class:`DatagramParseError`."""
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DatagramParseError(f"Datagram is not JSON: {exc}") from exc
    return ConditionsSnapshot.from_datagram(payload)


class _ListenerProtocol(asyncio.DatagramProtocol):
    def __init__(self, listener: UdpListener) -> None:
        self._listener = listener

    def datagram_received(self, data: bytes, addr: tuple[str | Any, int]) -> None:
        self._listener._on_datagram(self, data, addr)

    def error_received(self, exc: Exception) -> None:
        self._listener._on_socket_error(self, exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            self._listener._on_socket_error(self, exc)


class UdpListener:
    """Owns the overlay; feeds each parsed datagram to *on_overlay*."""

    def __init__(
        self,
        *,
        context: FusionContext,
        on_overlay: Callable[[ConditionsSnapshot, str], None],
        bind_host: str = "0.0.0.0",
        endpoint_factory: EndpointFactory | None = None,
    ) -> None:
        self._context = context
        self._on_overlay = on_overlay
        self._bind_host = bind_host
        self._create_endpoint = endpoint_factory or _create_endpoint
        self._transport: asyncio.DatagramTransport | None = None
        self._protocol: _ListenerProtocol | None = None
        self._port: int | None = None
        self._lock = asyncio.Lock()

    @property
    def bound_port(self) -> int | None:
        """Port currently accepting datagrams, or None when unbound."""
        return self._port if self.is_bound else None

    @property
    def is_bound(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    async def bind(self, port: int) -> None:
        """Listen on *port*, replacing any other socket.

        Binding the port already held is a no-op. If the new bind fails the
        listener stays unbound.

        Raises
        ------
        SocketBindError
            The port could not be bound.
        """
        async with self._lock:
            if self.is_bound and self._port == port:
                return

            self._close_transport()

            protocol = _ListenerProtocol(self)
            try:
                transport, _ = await self._create_endpoint(lambda: protocol, (self._bind_host, port))
            except OSError as exc:
                raise SocketBindError(f"Cannot bind UDP port {port}: {exc}", port=port) from exc

            self._transport = transport
            self._protocol = protocol
            self._port = port
            _logger.info("UDP listener bound on %s:%s", self._bind_host, port)

    def close(self) -> None:
        self._close_transport()

    def _close_transport(self) -> None:
        transport = self._transport
        port = self._port
        self._transport = None
        self._protocol = None
        self._port = None
        if transport is None:
            return
        try:
            transport.close()
        except Exception:
            _logger.debug("Ignoring error closing UDP socket on port %s", port, exc_info=True)
        else:
            _logger.info("UDP listener on port %s closed", port)

    def handle_datagram(self, data: bytes, addr: tuple[Any, int]) -> ConditionsSnapshot | None:
        """Parse *data* and publish it as the new overlay."""
        if self._context.device is None:
            _logger.debug("Dropping datagram from %s:%s: no device", addr[0], addr[1])
            return None

        try:
            overlay = parse_datagram(data)
        except DatagramParseError as exc:
            _logger.warning("Dropping datagram from %s:%s: %s", addr[0], addr[1], exc)
            _logger.debug("Raw datagram: %r", data[:512])
            return None

        _logger.debug("Received UDP data from %s:%s", addr[0], addr[1])
        self._context.overlay = overlay
        self._on_overlay(overlay, f"{addr[0]}:{addr[1]}")
        return overlay

    def _on_datagram(self, protocol: _ListenerProtocol, data: bytes, addr: tuple[Any, int]) -> None:
        if protocol is not self._protocol:
            return
        try:
            self.handle_datagram(data, addr)
        except Exception:
            _logger.warning("Unexpected error handling datagram", exc_info=True)

    def _on_socket_error(self, protocol: _ListenerProtocol, exc: Exception) -> None:
        if protocol is not self._protocol:
            return
        _logger.error("UDP socket error on port %s: %s; waiting for next lease renewal", self._port, exc)
        self._close_transport()
