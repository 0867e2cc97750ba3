#!/usr/bin/env python3
"""Print every envelope pushed by a running pywll service."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

import aiohttp

_LOG = logging.getLogger("ws_watch")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch pywll WebSocket envelopes.")
    parser.add_argument("--url", default="ws://localhost:3000/ws", help="Service WebSocket URL.")
    parser.add_argument("--json", action="store_true", help="Pretty-print the full envelope.")
    parser.add_argument("--duration", type=float, default=0, help="Stop after N seconds (0 = until Ctrl+C).")
    return parser.parse_args()


def _summarize(envelope: dict) -> str:
    data = envelope.get("data") or {}
    conditions = data.get("conditions") or []
    wind = next((c.get("wind_speed_last") for c in conditions if "wind_speed_last" in c), None)
    rain = next((c.get("rain_24_hr") for c in conditions if "rain_24_hr" in c), None)
    return (
        f"{envelope.get('timestamp')} {envelope.get('dataSource'):>4} {envelope.get('source')} "
        f"records={len(conditions)} wind_speed_last={wind} rain_24_hr={rain}"
    )


async def _watch(url: str, pretty: bool) -> None:
    async with aiohttp.ClientSession() as session, session.ws_connect(url) as ws:
        _LOG.info("Connected to %s", url)
        async for msg in ws:
            if msg.type is not aiohttp.WSMsgType.TEXT:
                _LOG.info("Connection closed (%s)", msg.type)
                break
            envelope = json.loads(msg.data)
            print(json.dumps(envelope, indent=2) if pretty else _summarize(envelope), flush=True)


async def _main() -> None:
    args = _parse_args()
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    if args.duration > 0:
        try:
            await asyncio.wait_for(_watch(args.url, args.json), args.duration)
        except TimeoutError:
            _LOG.info("Duration elapsed")
    else:
        await _watch(args.url, args.json)


if __name__ == "__main__":
    asyncio.run(_main())
