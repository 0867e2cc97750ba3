"""Shared fusion state.

One :class:`FusionContext` is owned by the service and handed to every
component. Each slot has exactly one writer and is replaced wholesale, so a
reader on the event loop always sees a complete old or new value:

- ``device`` / ``generation``: :class:`pywll.discovery.DeviceLocator`
- ``lease``: :class:`pywll.ingestion.lease.RealtimeLease`
- ``base``: :class:`pywll.ingestion.http.HttpPoller`
- ``overlay``: :class:`pywll.ingestion.udp.UdpListener`
"""

from __future__ import annotations

from dataclasses import dataclass

from pywll.models.conditions import ConditionsSnapshot
from pywll.models.device import DeviceHandle, Lease


@dataclass
class FusionContext:
    device: DeviceHandle | None = None
    generation: int = 0
    lease: Lease | None = None
    base: ConditionsSnapshot | None = None
    overlay: ConditionsSnapshot | None = None

    def attach_device(self, device: DeviceHandle) -> int:
        """Make *device* current and return the generation its work must carry."""
        self.generation += 1
        self.device = device
        return self.generation

    def detach_device(self) -> int:
        """Forget the device and everything derived from it.

        Bumping the generation turns every callback scheduled for the old
        device into a no-op.
        """
        self.generation += 1
        self.device = None
        self.lease = None
        self.base = None
        self.overlay = None
        return self.generation

    def is_current(self, generation: int) -> bool:
        return self.device is not None and generation == self.generation
