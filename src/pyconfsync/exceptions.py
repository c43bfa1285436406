"""Custom exception hierarchy for pyconfsync."""

from __future__ import annotations


class ConfSyncError(Exception):
    """Base exception for all pyconfsync errors."""


class ConfSyncConfigError(ConfSyncError):
    """Invalid or missing configuration."""


class ConfSyncTransportError(ConfSyncError):
    """Socket-level failure (connect, timeout, unexpected closure)."""

    def __init__(
        self,
        message: str,
        *,
        host: str = "",
        port: int | None = None,
    ) -> None:
        self.host = host
        self.port = port
        super().__init__(message)


class FrameEOFError(ConfSyncTransportError):
    """Peer closed the stream before the declared payload length arrived."""

    def __init__(
        self,
        message: str,
        *,
        expected: int,
        received: int,
        host: str = "",
        port: int | None = None,
    ) -> None:
        self.expected = expected
        self.received = received
        super().__init__(message, host=host, port=port)


class FrameHeaderError(ConfSyncError):
    """Length header is missing, not a non-negative integer, or out of bounds."""

    def __init__(self, message: str, *, header: str = "") -> None:
        self.header = header
        super().__init__(message)


class PayloadEncodingError(ConfSyncError):
    """Payload bytes are not valid UTF-8."""


class ConfSyncPersistenceError(ConfSyncError):
    """Reading or writing the persisted configuration file failed."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)
