"""pywll - Async fusion service for WeatherLink Live HTTP and UDP telemetry."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pywll")
except PackageNotFoundError:
    __version__ = "0+local"
from pywll.broadcast import Broadcaster
from pywll.config import WllConfig
from pywll.discovery import DeviceLocator, DiscoveryState
from pywll.exceptions import (
    DatagramParseError,
    DiscoveryTimeoutError,
    LeaseActivationError,
    PollError,
    SocketBindError,
    WllConfigError,
    WllError,
    WllProtocolError,
    WllTransportError,
)
from pywll.ingestion.http import HttpPoller
from pywll.ingestion.lease import RealtimeLease
from pywll.ingestion.udp import UdpListener
from pywll.models import ConditionsSnapshot, DeviceHandle, Lease, PushEnvelope, RealtimeActivation
from pywll.rain import convert_rain_fields, convert_rain_value
from pywll.service import WeatherFusionService
from pywll.state.context import FusionContext
from pywll.state.events import IngestionSource
from pywll.state.merge import convert_overlay, merge

__all__ = [
    "__version__",
    "Broadcaster",
    "ConditionsSnapshot",
    "DatagramParseError",
    "DeviceHandle",
    "DeviceLocator",
    "DiscoveryState",
    "DiscoveryTimeoutError",
    "FusionContext",
    "HttpPoller",
    "IngestionSource",
    "Lease",
    "LeaseActivationError",
    "PollError",
    "PushEnvelope",
    "RealtimeActivation",
    "RealtimeLease",
    "SocketBindError",
    "UdpListener",
    "WeatherFusionService",
    "WllConfig",
    "WllConfigError",
    "WllError",
    "WllProtocolError",
    "WllTransportError",
    "convert_overlay",
    "convert_rain_fields",
    "convert_rain_value",
    "merge",
]
