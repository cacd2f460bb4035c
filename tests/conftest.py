"""Shared fixtures: a fake serial device and helpers for async delivery."""

import queue
import threading
import time

import pytest
import serial

from serialmon.core.config import Config, ObserverConfig, SerialConfig, WebConfig


class FakeSerial:
    """Stands in for a pyserial handle; tests feed bytes or errors into it."""

    def __init__(self, path: str, baud_rate: int):
        self.port = path
        self.baudrate = baud_rate
        self.is_open = True
        self.written = bytearray()
        self.write_error = None
        self._incoming = queue.Queue()

    @property
    def in_waiting(self) -> int:
        return 0

    def read(self, size: int = 1) -> bytes:
        try:
            item = self._incoming.get(timeout=0.02)
        except queue.Empty:
            return b""
        if isinstance(item, Exception):
            raise item
        return item

    def write(self, data: bytes) -> int:
        if self.write_error:
            raise self.write_error
        self.written.extend(data)
        return len(data)

    def cancel_read(self) -> None:
        pass

    def close(self) -> None:
        self.is_open = False

    def feed(self, data: bytes) -> None:
        """Simulate the device sending bytes."""
        self._incoming.put(data)

    def fail(self, error: Exception | None = None) -> None:
        """Simulate a hardware read error."""
        self._incoming.put(error or serial.SerialException("device disconnected"))


class FakeOpener:
    """Device opener that hands out FakeSerial handles and records calls."""

    def __init__(self):
        self.calls: list[tuple[str, int]] = []
        self.handles: dict[str, list[FakeSerial]] = {}
        self.unavailable: set[str] = set()
        self.delay = 0.0
        self._lock = threading.Lock()

    def __call__(self, path: str, baud_rate: int) -> FakeSerial:
        with self._lock:
            self.calls.append((path, baud_rate))
        if self.delay:
            time.sleep(self.delay)
        if path in self.unavailable:
            raise serial.SerialException(f"could not open port {path}: No such file or directory")
        handle = FakeSerial(path, baud_rate)
        with self._lock:
            self.handles.setdefault(path, []).append(handle)
        return handle

    def handle(self, path: str) -> FakeSerial:
        """Most recent handle opened for path."""
        return self.handles[path][-1]

    def calls_for(self, path: str) -> int:
        return sum(1 for p, _ in self.calls if p == path)


class EventRecorder:
    """Collects published events; usable as an observer callback."""

    def __init__(self):
        self.events: list = []
        self._lock = threading.Lock()

    def __call__(self, event) -> None:
        with self._lock:
            self.events.append(event)

    def named(self, name: str) -> list:
        with self._lock:
            return [e for e in self.events if e.name == name]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's environment out of config loading."""
    for var in (
        "SERIALMON_CONFIG",
        "SERIALMON_STATE_FILE",
        "SERIALMON_LOG_DIR",
        "SERIALMON_LOG_LEVEL",
        "SERIALMON_PORT",
        "PORT",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def opener():
    """Fake device opener."""
    return FakeOpener()


@pytest.fixture
def recorder():
    """Event recorder."""
    return EventRecorder()


@pytest.fixture
def wait_for():
    """Poll a condition until it holds or the timeout expires."""

    def _wait_for(condition, timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if condition():
                return True
            time.sleep(0.01)
        return condition()

    return _wait_for


@pytest.fixture
def config(tmp_path):
    """Configuration pointing at a temporary state file and log directory."""
    return Config(
        serial=SerialConfig(default_baud=115200, read_timeout=0.02),
        web=WebConfig(host="127.0.0.1", port=3000),
        observers=ObserverConfig(queue_size=64),
        state_file=tmp_path / "config.json",
        log_dir=tmp_path / "logs",
    )
