"""Device identity and real-time lease models."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from pywll.exceptions import LeaseActivationError
from pywll.ingestion.normalize import safe_int


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DeviceHandle(BaseModel):
    """A discovered WeatherLink Live.

    Parameters
    ----------
    name : str
        Full DNS-SD instance name. This is the device identity; down events
        are matched against it.
    address : str
        IP address used for HTTP requests.
    port : int
        HTTP port advertised by the device.
    host : str or None
        Advertised server hostname, informational only.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    name: str
    address: str
    port: int = Field(default=80, gt=0, lt=65536)
    host: str | None = None

    @field_validator("name", "address")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("must be non-empty")
        return value

    @property
    def base_url(self) -> str:
        return f"http://{self.address}:{self.port}"

    @property
    def label(self) -> str:
        return f"{self.address}:{self.port}"


class RealtimeActivation(BaseModel):
    """Parsed ``real_time`` activation response."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    broadcast_port: int = Field(..., gt=0, lt=65536)
    duration: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap_data(cls, values: Any) -> Any:
        if isinstance(values, dict) and isinstance(values.get("data"), dict):
            return values["data"]
        return values

    @field_validator("broadcast_port", "duration", mode="before")
    @classmethod
    def _coerce_ints(cls, value: Any) -> int | None:
        return safe_int(value)

    @classmethod
    def from_api(cls, payload: Any) -> RealtimeActivation:
        """Parse an activation response, raising if it has no usable port."""
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise LeaseActivationError(f"No broadcast_port in real-time response: {payload!r}") from exc


class Lease(BaseModel):
    """A negotiated real-time broadcast session."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    port: int
    duration: float
    activated_at: datetime = Field(default_factory=_utcnow)

    @property
    def expires_at(self) -> datetime:
        return self.activated_at + timedelta(seconds=self.duration)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or _utcnow()) >= self.expires_at
