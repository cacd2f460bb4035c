"""
Exception hierarchy for serialmon.

Hardware and log failures are normally turned into port-error events;
these exceptions cover the cases that are reported to a caller instead.
"""

from typing import Optional


class SerialMonitorError(Exception):
    """Base error for serialmon."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(f"{path}: {message}" if path else message)
        self.message = message
        self.path = path


class OpenError(SerialMonitorError):
    """Raised when a port session cannot be opened."""


class HardwareUnavailable(OpenError):
    """Raised when the underlying device cannot be opened."""


class WriteError(SerialMonitorError):
    """Raised when bytes cannot be routed to a port session."""


class NotOpenError(WriteError):
    """Raised when writing to a path with no open session."""


class ReadFailure(SerialMonitorError):
    """A read loop stopped because the device failed."""

    def __init__(self, message: str, path: Optional[str] = None, disconnected: bool = False):
        super().__init__(message, path)
        self.disconnected = disconnected


class LogWriteFailure(SerialMonitorError):
    """Appending received bytes to the port log failed."""


class ConfigParseError(SerialMonitorError):
    """Raised when a desired-state document is malformed."""
