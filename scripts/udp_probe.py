#!/usr/bin/env python3
"""Send a sample WeatherLink Live real-time datagram to a local port.

Exercises the UDP path of a running pywll service without hardware. The
service only accepts datagrams on the port named by the current lease; check
its log for "UDP listener bound" to find it (22222 on most devices).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
from typing import Any

_LOG = logging.getLogger("udp_probe")


def _sample_payload() -> dict[str, Any]:
    return {
        "did": "001D0A700001",
        "ts": int(time.time()),
        "conditions": [
            {
                "lsid": 48308,
                "data_structure_type": 1,
                "txid": 1,
                "wind_speed_last": 5.2,
                "wind_dir_last": 180,
                "rain_size": 2,
                "rain_rate_last": 0,
                "rain_15_min": 0,
                "rain_60_min": 1,
                "rain_24_hr": 15,
                "rain_storm": 15,
                "rain_storm_start_at": None,
            }
        ],
    }


class _SendOnce(asyncio.DatagramProtocol):
    def __init__(self, payload: bytes, done: asyncio.Future[None]) -> None:
        self._payload = payload
        self._done = done

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        assert isinstance(transport, asyncio.DatagramTransport)  # noqa: S101
        transport.sendto(self._payload)
        transport.close()

    def connection_lost(self, exc: Exception | None) -> None:
        if not self._done.done():
            self._done.set_result(None)


async def _send(host: str, port: int, payload: dict[str, Any]) -> None:
    loop = asyncio.get_running_loop()
    done: asyncio.Future[None] = loop.create_future()
    data = json.dumps(payload).encode("utf-8")
    await loop.create_datagram_endpoint(lambda: _SendOnce(data, done), remote_addr=(host, port))
    await done


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a sample WeatherLink Live UDP datagram.")
    parser.add_argument("port", type=int, nargs="?", default=22222, help="Target UDP port.")
    parser.add_argument("--host", default="127.0.0.1", help="Target host.")
    parser.add_argument("--count", type=int, default=1, help="Number of datagrams to send.")
    parser.add_argument("--interval", type=float, default=2.5, help="Seconds between datagrams.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Print each payload.")
    return parser.parse_args()


async def _main() -> None:
    args = _parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")

    for index in range(args.count):
        payload = _sample_payload()
        await _send(args.host, args.port, payload)
        _LOG.info("Sent datagram %d/%d to %s:%s", index + 1, args.count, args.host, args.port)
        _LOG.debug("%s", json.dumps(payload, indent=2))
        if index + 1 < args.count:
            await asyncio.sleep(args.interval)


if __name__ == "__main__":
    asyncio.run(_main())
