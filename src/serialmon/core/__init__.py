"""
Core components for serialmon.

Provides configuration, data models, errors, and desired-state storage.
"""

from serialmon.core.config import Config, load_config
from serialmon.core.errors import (
    ConfigParseError,
    HardwareUnavailable,
    LogWriteFailure,
    NotOpenError,
    OpenError,
    ReadFailure,
    SerialMonitorError,
    WriteError,
)
from serialmon.core.models import (
    ConfigEvent,
    DesiredState,
    PortData,
    PortError,
    PortSpec,
    SessionState,
)
from serialmon.core.store import ConfigStore

__all__ = [
    "Config",
    "load_config",
    "ConfigStore",
    "DesiredState",
    "PortSpec",
    "SessionState",
    "PortData",
    "PortError",
    "ConfigEvent",
    "SerialMonitorError",
    "OpenError",
    "HardwareUnavailable",
    "WriteError",
    "NotOpenError",
    "ReadFailure",
    "LogWriteFailure",
    "ConfigParseError",
]
