"""Best-effort fan-out of merged state to subscribers."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Protocol

from pywll.models.envelope import PushEnvelope

_logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """The part of ``aiohttp.web.WebSocketResponse`` the broadcaster needs."""

    @property
    def closed(self) -> bool: ...

    async def send_str(self, data: str) -> None: ...

    async def close(self) -> object: ...


class Broadcaster:
    """Registry of open subscribers with a single publish primitive.

    Nothing is buffered: a subscriber only sees envelopes published while it
    is registered. A subscriber that is closed, raises, or exceeds
    ``send_timeout`` is dropped and closed without affecting the others.
    """

    def __init__(self, *, send_timeout: float = 5.0) -> None:
        self._send_timeout = send_timeout
        self._subscribers: set[Subscriber] = set()

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber: object) -> bool:
        return subscriber in self._subscribers

    def add(self, subscriber: Subscriber) -> None:
        self._subscribers.add(subscriber)
        _logger.info("Subscriber connected (%d total)", len(self._subscribers))

    def remove(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            _logger.info("Subscriber disconnected (%d total)", len(self._subscribers))

    async def publish(self, envelope: PushEnvelope) -> int:
        """Send *envelope* to every subscriber. Returns the delivered count."""
        # Snapshot so subscribers may come and go while sends are pending.
        targets = list(self._subscribers)
        if not targets:
            return 0

        message = envelope.to_json()
        results = await asyncio.gather(
            *(self._deliver(subscriber, message) for subscriber in targets),
            return_exceptions=True,
        )

        delivered = 0
        evicted: list[Subscriber] = []
        for subscriber, result in zip(targets, results, strict=True):
            if result is True:
                delivered += 1
                continue
            if isinstance(result, BaseException):
                _logger.debug("Dropping subscriber after failed send: %r", result)
            self.remove(subscriber)
            evicted.append(subscriber)

        # A timed-out send may have written a partial frame.
        if evicted:
            await asyncio.gather(*(self._close(subscriber) for subscriber in evicted))
        return delivered

    async def _close(self, subscriber: Subscriber) -> None:
        with contextlib.suppress(Exception):
            await asyncio.wait_for(subscriber.close(), self._send_timeout)

    async def _deliver(self, subscriber: Subscriber, message: str) -> bool:
        if subscriber.closed:
            return False
        await asyncio.wait_for(subscriber.send_str(message), self._send_timeout)
        return True
