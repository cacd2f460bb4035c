"""
Serial port sessions.

A PortSession owns one hardware handle and the log for its path. A
dedicated thread reads from the device and hands every chunk to the log
and then to the broadcaster. Failures never propagate to callers; they
move the session to FAILED and are published as a port-error event.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

import serial

from serialmon.core.errors import HardwareUnavailable, ReadFailure, SerialMonitorError
from serialmon.core.models import PortData, PortError, PortSpec, SessionState
from serialmon.serial.logfile import LogAppender

logger = logging.getLogger(__name__)

# Errors pyserial (and the OS underneath it) raise on a failed device
SERIAL_ERRORS = (serial.SerialException, OSError)

Opener = Callable[[str, int], Any]
Publisher = Callable[[Any], None]


def open_serial(path: str, baud_rate: int, timeout: float = 0.1) -> serial.Serial:
    """
    Open a serial device.

    Accepts device paths as well as pyserial URLs such as ``loop://`` or
    ``socket://host:port``. The read timeout bounds how long a read loop
    waits before checking for a stop request.
    """
    return serial.serial_for_url(path, baudrate=baud_rate, timeout=timeout)


class PortSession:
    """One hardware connection and its read loop."""

    def __init__(
        self,
        spec: PortSpec,
        log_dir: Path,
        publish: Publisher,
        opener: Opener = open_serial,
        join_timeout: float = 2.0,
    ):
        """
        Initialize port session.

        Args:
            spec: Port path and baud rate
            log_dir: Directory for the per-port traffic log
            publish: Receives PortData and PortError events
            opener: Returns a pyserial-like handle for (path, baud_rate)
            join_timeout: How long close() waits for the read loop to exit
        """
        self.spec = spec
        self.publish = publish
        self.opener = opener
        self.join_timeout = join_timeout
        self.log = LogAppender(log_dir, spec.path, on_error=self._report_log_error)

        self.opened_at: Optional[datetime] = None
        self.bytes_in = 0
        self.bytes_out = 0

        self._state = SessionState.OPENING
        self._state_lock = threading.Lock()
        self._write_lock = threading.Lock()
        # Set on close or failure; the read loop and writers stop on it
        self._stop = threading.Event()
        self._closed = False
        self._handle: Any = None
        self._read_thread: Optional[threading.Thread] = None

    def __repr__(self) -> str:
        return f"PortSession({self.path!r}, {self.baud_rate}, {self.state.value})"

    @property
    def path(self) -> str:
        return self.spec.path

    @property
    def baud_rate(self) -> int:
        return self.spec.baud_rate

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN

    def start(self) -> None:
        """
        Open the device and start the read loop.

        Raises:
            HardwareUnavailable: If the device cannot be opened
        """
        logger.info(f"Opening {self.path} at {self.baud_rate} baud")
        try:
            self._handle = self.opener(self.path, self.baud_rate)
        except (*SERIAL_ERRORS, ValueError) as e:
            with self._state_lock:
                self._state = SessionState.FAILED
            self.log.close()
            raise HardwareUnavailable(f"Cannot open port: {e}", self.path) from e

        with self._state_lock:
            self._state = SessionState.OPEN
        self.opened_at = datetime.now()

        self._read_thread = threading.Thread(
            target=self._read_loop,
            name=f"{self.path} reader",
            daemon=True,
        )
        self._read_thread.start()

    def _read_loop(self) -> None:
        """Read from the device until closed or failed."""
        handle = self._handle
        logger.debug(f"Read loop started for {self.path}")

        while not self._stop.is_set():
            try:
                # Block for at least one byte, then take whatever else is waiting
                data = handle.read(handle.in_waiting or 1)
            except SERIAL_ERRORS as e:
                if self._stop.is_set():
                    break
                message = str(e) or e.__class__.__name__
                self._fail(
                    ReadFailure(
                        message,
                        self.path,
                        disconnected="disconnected" in message.lower(),
                    )
                )
                break

            if not data:
                continue
            if self._stop.is_set():
                break

            self.bytes_in += len(data)
            self.log.append(data)
            self.publish(PortData(self.path, bytes(data)))

        logger.debug(f"Read loop finished for {self.path}")

    def write(self, data: bytes) -> None:
        """Send bytes to the device. Errors are published, not raised."""
        with self._write_lock:
            if self._stop.is_set() or self._handle is None or self.state != SessionState.OPEN:
                self.publish(PortError(self.path, "Write failed: port not open"))
                return
            try:
                written = self._handle.write(data)
            except SERIAL_ERRORS as e:
                self._fail(SerialMonitorError(f"Write failed: {e}", self.path))
                return
            self.bytes_out += written if written is not None else len(data)

    def _fail(self, failure: SerialMonitorError) -> None:
        """Move to FAILED and publish a single port-error."""
        with self._state_lock:
            if self._state.is_terminal:
                return
            self._state = SessionState.FAILED
        self._stop.set()

        logger.error(str(failure))
        self.publish(PortError(self.path, failure.message))

    def _report_log_error(self, path: str, message: str) -> None:
        self.publish(PortError(path, message))

    def close(self) -> None:
        """Stop the read loop and release the device and log handles."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
        self._stop.set()

        handle = self._handle
        if handle is not None:
            cancel_read = getattr(handle, "cancel_read", None)
            if cancel_read:
                try:
                    cancel_read()
                except SERIAL_ERRORS:
                    logger.debug(f"Can't cancel read on {self.path}")

        thread = self._read_thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=self.join_timeout)
            if thread.is_alive():
                logger.warning(f"Read loop for {self.path} did not stop")

        if handle is not None:
            with self._write_lock:
                try:
                    handle.close()
                except SERIAL_ERRORS as e:
                    logger.warning(f"Error closing {self.path}: {e}")
                self._handle = None

        self.log.close()

        with self._state_lock:
            if not self._state.is_terminal:
                self._state = SessionState.CLOSED

        logger.info(f"Closed {self.path}")

    def to_dict(self) -> dict:
        """Describe the session for the API and CLI."""
        return {
            "path": self.path,
            "baudRate": self.baud_rate,
            "state": self.state.value,
            "opened_at": self.opened_at.isoformat() if self.opened_at else None,
            "bytes_in": self.bytes_in,
            "bytes_out": self.bytes_out,
            "log_file": str(self.log.log_file),
        }
