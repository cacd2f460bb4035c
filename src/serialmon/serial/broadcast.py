"""
Event fan-out to attached observers.

Each observer gets a bounded queue drained by its own thread, so a slow or
dead observer never holds up the others or the read loop that published
the event. When an observer's queue is full the event is dropped for that
observer only; the per-port log is the durable record.
"""

import logging
import queue
import threading
import uuid
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Observer(Protocol):
    """Anything that can receive broadcast events."""

    observer_id: str

    def deliver(self, event: Any) -> None:
        ...


class CallbackObserver:
    """Observer wrapping a plain callable, for in-process listeners."""

    def __init__(self, callback: Callable[[Any], None], observer_id: Optional[str] = None):
        self.callback = callback
        self.observer_id = observer_id or str(uuid.uuid4())

    def deliver(self, event: Any) -> None:
        self.callback(event)


class _ObserverQueue:
    """Bounded queue plus delivery thread for one observer."""

    def __init__(self, observer: Observer, maxsize: int):
        self.observer = observer
        self.queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name=f"observer {observer.observer_id[:8]}",
            daemon=True,
        )

    def start(self) -> None:
        self._thread.start()

    def offer(self, event: Any) -> bool:
        """Queue an event without blocking. Returns False if it was dropped."""
        try:
            self.queue.put_nowait(event)
            return True
        except queue.Full:
            self.dropped += 1
            if self.dropped == 1 or self.dropped % 100 == 0:
                logger.warning(
                    f"Observer {self.observer.observer_id[:8]} is slow, "
                    f"{self.dropped} event(s) dropped"
                )
            return False

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                event = self.queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self.observer.deliver(event)
            except Exception as e:
                logger.debug(f"Delivery to observer {self.observer.observer_id[:8]} failed: {e}")

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)


class Broadcaster:
    """Publishes session events to every attached observer."""

    def __init__(self, queue_size: int = 256):
        """
        Initialize broadcaster.

        Args:
            queue_size: Events buffered per observer before new ones are dropped
        """
        self.queue_size = queue_size
        self._observers: dict[str, _ObserverQueue] = {}
        self._lock = threading.Lock()

    @property
    def observer_count(self) -> int:
        """Return number of attached observers."""
        with self._lock:
            return len(self._observers)

    def attach(self, observer: Observer) -> None:
        """Start delivering events to an observer."""
        entry = _ObserverQueue(observer, self.queue_size)
        with self._lock:
            previous = self._observers.pop(observer.observer_id, None)
            self._observers[observer.observer_id] = entry
        if previous:
            previous.stop()
        entry.start()
        logger.debug(f"Observer {observer.observer_id[:8]} attached")

    def subscribe(self, callback: Callable[[Any], None]) -> str:
        """Attach a callable as an observer. Returns its observer id."""
        observer = CallbackObserver(callback)
        self.attach(observer)
        return observer.observer_id

    def detach(self, observer_id: str) -> bool:
        """Stop delivering events to an observer. Returns False if unknown."""
        with self._lock:
            entry = self._observers.pop(observer_id, None)
        if entry is None:
            return False
        entry.stop()
        logger.debug(f"Observer {observer_id[:8]} detached")
        return True

    def publish(self, event: Any) -> None:
        """Queue an event for every observer. Never blocks."""
        with self._lock:
            entries = list(self._observers.values())
        for entry in entries:
            entry.offer(event)

    def dropped(self, observer_id: str) -> int:
        """Number of events dropped for an observer."""
        with self._lock:
            entry = self._observers.get(observer_id)
        return entry.dropped if entry else 0

    def close(self) -> None:
        """Detach all observers."""
        with self._lock:
            entries = list(self._observers.values())
            self._observers.clear()
        for entry in entries:
            entry.stop()
