"""
Per-port traffic logs.

Every byte received from a port is appended verbatim to one file per port,
so the log is an exact replay of what the device sent.
"""

import logging
import re
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from serialmon.core.errors import LogWriteFailure

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[\\/:]")


def log_filename(path: str) -> str:
    """Map a port path to a filesystem-safe log file name."""
    return f"{_UNSAFE_CHARS.sub('_', path)}.log"


class LogAppender:
    """Appends raw bytes received on one port to its log file."""

    def __init__(
        self,
        log_dir: Path,
        path: str,
        on_error: Optional[Callable[[str, str], None]] = None,
    ):
        """
        Initialize log appender.

        Args:
            log_dir: Directory holding the per-port logs
            path: Port path the log belongs to
            on_error: Called with (path, message) when a write fails
        """
        self.log_dir = log_dir
        self.path = path
        self.log_file = log_dir / log_filename(path)
        self.on_error = on_error
        self._file_handle: Optional[BinaryIO] = None
        self._failing = False
        self._closed = False

    def append(self, data: bytes) -> None:
        """Append data to the log. Failures are reported, never raised."""
        if self._closed:
            return
        try:
            if self._file_handle is None:
                self.log_dir.mkdir(parents=True, exist_ok=True)
                self._file_handle = open(self.log_file, "ab")
            self._file_handle.write(data)
            self._file_handle.flush()
        except OSError as e:
            self._report(LogWriteFailure(f"Log write failed: {e}", self.path))
            return

        self._failing = False

    def _report(self, failure: LogWriteFailure) -> None:
        # Report the first failure of a run; a successful write re-arms it
        if self._failing:
            return
        self._failing = True
        logger.error(str(failure))
        if self.on_error:
            self.on_error(self.path, failure.message)

    def close(self) -> None:
        """Close the log file."""
        self._closed = True
        if self._file_handle:
            try:
                self._file_handle.close()
            except OSError as e:
                logger.warning(f"Failed to close log {self.log_file}: {e}")
            self._file_handle = None
