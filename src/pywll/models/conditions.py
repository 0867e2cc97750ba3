"""Current-conditions snapshot model.

Both device channels deliver the same shape::

    {"did": "001D0A700001", "ts": 1700000000, "conditions": [{...}, {...}]}

Each condition record is kept as a plain dict so that a field which is
absent stays distinguishable from a field which is explicitly null.
"""

from __future__ import annotations

import copy
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pywll.exceptions import DatagramParseError, WllProtocolError
from pywll.ingestion.normalize import normalize_timestamp_seconds


class ConditionsSnapshot(BaseModel):
    """One full (HTTP) or partial (UDP) reading of every subsystem."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    did: str | None = None
    ts: float | None = None
    conditions: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("did", mode="before")
    @classmethod
    def _coerce_did(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("ts", mode="before")
    @classmethod
    def _coerce_ts(cls, value: Any) -> float | None:
        return normalize_timestamp_seconds(value)

    @field_validator("conditions", mode="before")
    @classmethod
    def _require_record_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
            raise ValueError("conditions must be a list of objects")
        return value

    @classmethod
    def from_api(cls, payload: Any) -> ConditionsSnapshot:
        """Parse a ``current_conditions`` response body."""
        body = payload.get("data") if isinstance(payload, dict) and isinstance(payload.get("data"), dict) else payload
        if not isinstance(body, dict) or not isinstance(body.get("conditions"), list):
            raise WllProtocolError("current_conditions response has no conditions list")
        try:
            return cls.model_validate(body)
        except ValidationError as exc:
            raise WllProtocolError(f"Invalid current_conditions response: {exc}") from exc

    @classmethod
    def from_datagram(cls, payload: Any) -> ConditionsSnapshot:
        """Parse a decoded UDP datagram.

        A datagram without a ``conditions`` list is a single bare record.
        """
        if not isinstance(payload, dict):
            raise DatagramParseError(f"Datagram is not a JSON object: {type(payload).__name__}")
        if "conditions" not in payload:
            payload = {"did": payload.get("did"), "ts": payload.get("ts"), "conditions": [payload]}
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise DatagramParseError(f"Invalid datagram: {exc}") from exc

    def with_conditions(self, conditions: list[dict[str, Any]]) -> ConditionsSnapshot:
        """Return a copy carrying *conditions* instead of the current records."""
        return self.model_copy(update={"conditions": conditions})

    def state(self) -> dict[str, Any]:
        """Deep-copied ``{did, ts, conditions}`` dict as published to subscribers."""
        ts: float | int | None = self.ts
        if ts is not None and ts.is_integer():
            ts = int(ts)
        return {"did": self.did, "ts": ts, "conditions": copy.deepcopy(self.conditions)}
