"""
Data models for serialmon.

Defines the desired-state document, session states, and the events
broadcast to observers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional

from serialmon.core.errors import ConfigParseError


def parse_baud_rate(value: Any, path: Optional[str] = None) -> int:
    """
    Validate a baudRate from the wire.

    Accepts positive integers and strings of digits. Booleans and floats
    are rejected rather than coerced.

    Raises:
        ConfigParseError: If value is not a positive integer
    """
    if isinstance(value, str) and value.isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigParseError(f"Invalid baudRate {value!r}", path)
    return value


class SessionState(Enum):
    """Port session lifecycle states."""

    OPENING = "opening"
    OPEN = "open"
    CLOSED = "closed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Closed and failed sessions never leave their state."""
        return self in (SessionState.CLOSED, SessionState.FAILED)

    @property
    def is_live(self) -> bool:
        """Opening and open sessions own their path in the registry."""
        return self in (SessionState.OPENING, SessionState.OPEN)


@dataclass(frozen=True)
class PortSpec:
    """A port that should be open, and at which baud rate."""

    path: str
    baud_rate: int = field(default=115200, compare=False)

    @classmethod
    def from_dict(cls, data: Any) -> "PortSpec":
        """Create PortSpec from its wire form ``{"path", "baudRate"}``."""
        if not isinstance(data, dict):
            raise ConfigParseError(f"Port entry must be an object, got {type(data).__name__}")

        path = data.get("path")
        if not isinstance(path, str) or not path:
            raise ConfigParseError("Port entry requires a non-empty 'path'")

        return cls(path=path, baud_rate=parse_baud_rate(data.get("baudRate"), path))

    def to_dict(self) -> dict[str, Any]:
        """Convert PortSpec to its wire form."""
        return {"path": self.path, "baudRate": self.baud_rate}


@dataclass
class DesiredState:
    """
    Declarative document of ports to keep open.

    ``layout`` and any unrecognised top-level keys belong to the browser
    and are carried through load/save unchanged.
    """

    ports: list[PortSpec] = field(default_factory=list)
    layout: Any = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "DesiredState":
        """Create DesiredState from a decoded document."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigParseError(f"Config document must be an object, got {type(data).__name__}")

        raw_ports = data.get("ports", [])
        if raw_ports is None:
            raw_ports = []
        if not isinstance(raw_ports, list):
            raise ConfigParseError("'ports' must be a list")

        extra = {k: v for k, v in data.items() if k not in ("ports", "layout")}
        return cls(
            ports=[PortSpec.from_dict(p) for p in raw_ports],
            layout=data.get("layout", []),
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert DesiredState to a JSON-serializable document."""
        data = dict(self.extra)
        data["ports"] = [p.to_dict() for p in self.ports]
        data["layout"] = self.layout
        return data

    @property
    def paths(self) -> list[str]:
        """Paths in document order."""
        return [p.path for p in self.ports]


@dataclass(frozen=True)
class PortData:
    """Bytes received from a port."""

    name: ClassVar[str] = "port-data"

    path: str
    data: bytes

    def to_payload(self) -> dict[str, Any]:
        """Convert to a Socket.IO payload; bytes are decoded for the browser."""
        return {"path": self.path, "data": self.data.decode("utf-8", errors="replace")}


@dataclass(frozen=True)
class PortError:
    """A human-readable failure on a port."""

    name: ClassVar[str] = "port-error"

    path: str
    error: str

    def to_payload(self) -> dict[str, Any]:
        return {"path": self.path, "error": self.error}


@dataclass(frozen=True)
class ConfigEvent:
    """Echo of the desired state after a load (``config``) or save (``config-saved``)."""

    name: str
    state: DesiredState

    def to_payload(self) -> dict[str, Any]:
        return self.state.to_dict()
