"""Typed models for WeatherLink Live payloads and service state."""

from pywll.models.conditions import ConditionsSnapshot
from pywll.models.device import DeviceHandle, Lease, RealtimeActivation
from pywll.models.envelope import PushEnvelope

__all__ = [
    "ConditionsSnapshot",
    "DeviceHandle",
    "Lease",
    "PushEnvelope",
    "RealtimeActivation",
]
