"""Custom exception hierarchy for pywll."""

from __future__ import annotations


class WllError(Exception):
    """Base exception for all pywll errors."""


class WllConfigError(WllError):
    """Invalid or missing configuration."""


class WllTransportError(WllError):
    """HTTP-level failure (network, timeout, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class WllProtocolError(WllError):
    """Device answered with JSON of an unexpected shape."""


class DiscoveryTimeoutError(WllError):
    """No device advertisement seen within the discovery window."""


class LeaseActivationError(WllProtocolError):
    """Real-time activation response did not carry a broadcast port."""


class PollError(WllError):
    """A current-conditions poll could not produce a snapshot."""


class DatagramParseError(WllProtocolError):
    """A UDP datagram was not a JSON object."""


class SocketBindError(WllError):
    """The UDP listener could not bind the leased port."""

    def __init__(self, message: str, *, port: int) -> None:
        self.port = port
        super().__init__(message)
