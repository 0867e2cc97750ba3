"""Service configuration for pywll."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pywll._constants import (
    CONDITIONS_PATH,
    DEFAULT_WEB_PORT,
    DISCOVERY_BACKOFF_S,
    DISCOVERY_TIMEOUT_S,
    POLL_INTERVAL_S,
    REALTIME_DURATION_S,
    REALTIME_PATH,
    REALTIME_RENEW_INTERVAL_S,
    SERVICE_TYPE,
)
from pywll.exceptions import WllConfigError


@dataclasses.dataclass(frozen=True)
class WllConfig:
    """Service configuration.

    Parameters
    ----------
    service_type : str
        DNS-SD service type advertised by the WeatherLink Live.
    discovery_timeout : float
        Seconds to browse before abandoning a discovery attempt.
    discovery_backoff : float
        Seconds to wait after an abandoned attempt before browsing again.
    realtime_duration : int
        Seconds the device is asked to keep broadcasting UDP.
    realtime_renew_interval : float
        Seconds between real-time lease renewals. Must be shorter than
        ``realtime_duration`` so the lease never lapses.
    poll_interval : float
        Seconds between ``current_conditions`` polls.
    http_timeout : float
        Total timeout for a single device HTTP request.
    realtime_path : str
        Device path that activates the UDP broadcast.
    conditions_path : str
        Device path returning the full current-conditions snapshot.
    udp_bind_host : str
        Local address the UDP listener binds to.
    web_host : str
        Address the subscriber-facing web server listens on.
    web_port : int
        Port the subscriber-facing web server listens on.
    send_timeout : float
        Upper bound for delivering one envelope to one subscriber.
    """

    service_type: str = SERVICE_TYPE
    discovery_timeout: float = DISCOVERY_TIMEOUT_S
    discovery_backoff: float = DISCOVERY_BACKOFF_S
    realtime_duration: int = REALTIME_DURATION_S
    realtime_renew_interval: float = REALTIME_RENEW_INTERVAL_S
    poll_interval: float = POLL_INTERVAL_S
    http_timeout: float = 10.0
    realtime_path: str = REALTIME_PATH
    conditions_path: str = CONDITIONS_PATH
    udp_bind_host: str = "0.0.0.0"
    web_host: str = "0.0.0.0"
    web_port: int = DEFAULT_WEB_PORT
    send_timeout: float = 5.0

    def __post_init__(self) -> None:
        if self.realtime_renew_interval >= self.realtime_duration:
            raise WllConfigError(
                f"realtime_renew_interval ({self.realtime_renew_interval}) must be shorter "
                f"than realtime_duration ({self.realtime_duration})"
            )
        for name in ("discovery_timeout", "discovery_backoff", "poll_interval", "http_timeout", "send_timeout"):
            if getattr(self, name) <= 0:
                raise WllConfigError(f"{name} must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> WllConfig:
        """Create configuration from ``WLL_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "WLL_SERVICE_TYPE": "service_type",
            "WLL_REALTIME_PATH": "realtime_path",
            "WLL_CONDITIONS_PATH": "conditions_path",
            "WLL_UDP_BIND_HOST": "udp_bind_host",
            "WLL_WEB_HOST": "web_host",
        }
        _ENV_FLOAT_MAP = {
            "WLL_DISCOVERY_TIMEOUT": "discovery_timeout",
            "WLL_DISCOVERY_BACKOFF": "discovery_backoff",
            "WLL_REALTIME_RENEW_INTERVAL": "realtime_renew_interval",
            "WLL_POLL_INTERVAL": "poll_interval",
            "WLL_HTTP_TIMEOUT": "http_timeout",
            "WLL_SEND_TIMEOUT": "send_timeout",
        }
        _ENV_INT_MAP = {
            "WLL_REALTIME_DURATION": "realtime_duration",
            "WLL_WEB_PORT": "web_port",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        for mapping, convert in ((_ENV_FLOAT_MAP, float), (_ENV_INT_MAP, int)):
            for env_key, field_name in mapping.items():
                val = env.get(env_key)
                if val is None or field_name in overrides:
                    continue
                try:
                    config_kwargs[field_name] = convert(val)
                except ValueError as exc:
                    raise WllConfigError(f"{env_key} is not a valid number: {val!r}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
