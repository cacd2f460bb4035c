"""
Registry of live port sessions.

The registry is the only owner of PortSession objects and guarantees at
most one live session per path. Open and close on the same path are
serialized by a per-path lock; different paths never wait on each other,
even while a slow device open is in progress.
"""

import functools
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generator, Optional

from serialmon.core.errors import NotOpenError
from serialmon.core.models import PortSpec, SessionState
from serialmon.serial.session import Opener, PortSession, open_serial

logger = logging.getLogger(__name__)


class PortRegistry:
    """Manages the set of open port sessions."""

    def __init__(
        self,
        log_dir: Path,
        publish: Callable[[Any], None],
        opener: Optional[Opener] = None,
        read_timeout: float = 0.1,
    ):
        """
        Initialize port registry.

        Args:
            log_dir: Directory for per-port traffic logs
            publish: Receives events from every session (usually Broadcaster.publish)
            opener: Device opener passed to each session (default: pyserial)
            read_timeout: Read timeout for the default opener
        """
        self.log_dir = log_dir
        self.publish = publish
        self.opener = opener or functools.partial(open_serial, timeout=read_timeout)

        self._sessions: dict[str, PortSession] = {}
        # path -> (lock, number of callers holding or waiting on it)
        self._path_locks: dict[str, tuple[threading.Lock, int]] = {}
        self._lock = threading.Lock()

    @contextmanager
    def _path_lock(self, path: str) -> Generator[None, None, None]:
        """Hold the lock for path; the entry is dropped once nobody needs it."""
        with self._lock:
            lock, users = self._path_locks.get(path, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._path_locks[path] = (lock, users + 1)

        try:
            with lock:
                yield
        finally:
            with self._lock:
                lock, users = self._path_locks[path]
                if users == 1:
                    del self._path_locks[path]
                else:
                    self._path_locks[path] = (lock, users - 1)

    def open(self, spec: PortSpec) -> PortSession:
        """
        Open a session for spec.path, or return the one already live.

        A changed baud rate on a live path is ignored. A FAILED session is
        replaced by a fresh one.

        Returns:
            The live session for the path

        Raises:
            HardwareUnavailable: If the device cannot be opened
        """
        with self._path_lock(spec.path):
            existing = self.get(spec.path)
            if existing is not None:
                if existing.state.is_live:
                    if existing.baud_rate != spec.baud_rate:
                        logger.debug(
                            f"{spec.path} already open at {existing.baud_rate} baud, "
                            f"ignoring requested {spec.baud_rate}"
                        )
                    return existing

                logger.info(f"Replacing {existing.state.value} session for {spec.path}")
                self._remove(spec.path)
                existing.close()

            session = PortSession(
                spec,
                log_dir=self.log_dir,
                publish=self.publish,
                opener=self.opener,
            )
            # Raises before anything is registered, so a retry starts clean
            session.start()

            with self._lock:
                self._sessions[spec.path] = session
            return session

    def write(self, path: str, data: bytes) -> None:
        """
        Forward bytes to the session for path.

        Raises:
            NotOpenError: If no open session exists for path
        """
        session = self.get(path)
        if session is None or session.state != SessionState.OPEN:
            raise NotOpenError("Write failed: port not open", path)
        session.write(data)

    def close(self, path: str) -> bool:
        """Close and remove the session for path. Returns False if absent."""
        with self._path_lock(path):
            session = self._remove(path)
            if session is None:
                return False
            session.close()
            return True

    def close_all(self) -> None:
        """Close every session."""
        for path in list(self.paths()):
            self.close(path)

    def _remove(self, path: str) -> Optional[PortSession]:
        with self._lock:
            return self._sessions.pop(path, None)

    def get(self, path: str) -> Optional[PortSession]:
        """Get the session registered for path."""
        with self._lock:
            return self._sessions.get(path)

    def is_live(self, path: str) -> bool:
        """True if path has an opening or open session."""
        session = self.get(path)
        return session is not None and session.state.is_live

    def paths(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def sessions(self) -> list[PortSession]:
        with self._lock:
            return list(self._sessions.values())

    def list_sessions(self) -> list[dict]:
        """List all registered sessions."""
        return [s.to_dict() for s in self.sessions()]
