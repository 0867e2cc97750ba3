"""Ingestion layer.

This package contains the adapters that pull or receive data from the
WeatherLink Live (HTTP polling, real-time lease, UDP broadcast) and hand
parsed snapshots to the service for merging.
"""

__all__: list[str] = []
