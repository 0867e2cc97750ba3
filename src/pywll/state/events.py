"""Ingestion origins shared by the state layer and the push envelope."""

from __future__ import annotations

from enum import StrEnum


class IngestionSource(StrEnum):
    HTTP = "http"
    UDP = "udp"

    @property
    def label(self) -> str:
        return self.value.upper()
