"""Subscriber push envelope."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pywll.state.events import IngestionSource


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PushEnvelope(BaseModel):
    """One merged state as sent to every subscriber.

    Serialized as ``{"timestamp", "source", "data", "dataSource"}``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: datetime = Field(default_factory=_utcnow)
    source: str
    data: dict[str, Any] | None
    data_source: IngestionSource = Field(..., alias="dataSource")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
