"""HTTP transport for the device's local API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pywll.exceptions import WllTransportError
from pywll.models.device import DeviceHandle

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the ingestion modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`DeviceTransport`) concrete.
    """

    async def get_json(
        self,
        device: DeviceHandle,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
    ) -> Any: ...


class DeviceTransport:
    """GETs JSON from a WeatherLink Live with a bounded total timeout."""

    def __init__(self, http_session: aiohttp.ClientSession, *, timeout: float) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def get_json(
        self,
        device: DeviceHandle,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        url = f"{device.base_url}{endpoint}"
        _logger.debug("GET %s params=%s", url, dict(params or {}))

        try:
            async with self._http.get(url, params=params, timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise WllTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except WllTransportError:
            raise
        except TimeoutError as exc:
            raise WllTransportError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc
        except aiohttp.ClientError as exc:
            raise WllTransportError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise WllTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc
