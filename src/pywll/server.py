"""Subscriber-facing web surface.

``GET /`` returns a small landing page; a WebSocket upgrade on ``/`` or
``/ws`` registers the connection with the broadcaster until it closes.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from aiohttp import WSMsgType, web

from pywll.config import WllConfig
from pywll.service import WeatherFusionService

_logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("pywll_service", WeatherFusionService)

LANDING_HTML = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>pywll</title></head>
<body>
<h1>WeatherLink Live</h1>
<p>Connect a WebSocket client to this address to receive live conditions.</p>
<pre id="out">waiting for data&hellip;</pre>
<script>
const ws = new WebSocket((location.protocol === "https:" ? "wss://" : "ws://") + location.host + "/ws");
ws.onmessage = (event) => {
  document.getElementById("out").textContent = JSON.stringify(JSON.parse(event.data), null, 2);
};
</script>
</body>
</html>
"""


async def handle_root(request: web.Request) -> web.StreamResponse:
    if web.WebSocketResponse().can_prepare(request).ok:
        return await handle_ws(request)
    return web.Response(text=LANDING_HTML, content_type="text/html")


async def handle_ws(request: web.Request) -> web.StreamResponse:
    service = request.app[SERVICE_KEY]
    ws = web.WebSocketResponse(heartbeat=30.0)
    await ws.prepare(request)

    service.broadcaster.add(ws)
    try:
        async for msg in ws:
            if msg.type is WSMsgType.ERROR:
                _logger.debug("Subscriber connection error: %s", ws.exception())
                break
            _logger.debug("Ignoring inbound subscriber message type=%s", msg.type)
    finally:
        service.broadcaster.remove(ws)
    return ws


def create_app(config: WllConfig, *, service: WeatherFusionService | None = None) -> web.Application:
    """Build the aiohttp application; the service runs for the app's lifetime."""
    app = web.Application()
    app[SERVICE_KEY] = service or WeatherFusionService(config)

    async def _service_ctx(app: web.Application) -> AsyncIterator[None]:
        async with app[SERVICE_KEY]:
            yield

    app.cleanup_ctx.append(_service_ctx)
    app.router.add_get("/", handle_root)
    app.router.add_get("/ws", handle_ws)
    return app
