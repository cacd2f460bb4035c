"""
Serial monitor service.

Wires the registry, broadcaster, store and reconciler together and handles
the operations clients request: opening, writing to and closing ports,
and loading or saving the desired state.
"""

import logging
import threading
from typing import Any, Callable, Optional, Union

from serialmon.core.config import Config
from serialmon.core.errors import ConfigParseError, NotOpenError, OpenError
from serialmon.core.models import ConfigEvent, DesiredState, PortError, PortSpec
from serialmon.core.store import ConfigStore
from serialmon.serial.broadcast import Broadcaster, Observer
from serialmon.serial.devices import list_devices
from serialmon.serial.reconcile import ReconcileFailure, Reconciler
from serialmon.serial.registry import PortRegistry
from serialmon.serial.session import Opener, PortSession

logger = logging.getLogger(__name__)


class SerialMonitor:
    """Shared control plane for all serial ports."""

    def __init__(
        self,
        config: Config,
        opener: Optional[Opener] = None,
        device_lister: Optional[Callable[[], list[dict]]] = None,
    ):
        """
        Initialize serial monitor.

        Args:
            config: Server configuration
            opener: Device opener override (default: pyserial)
            device_lister: Device enumeration override
        """
        self.config = config
        self.broadcaster = Broadcaster(queue_size=config.observers.queue_size)
        self.registry = PortRegistry(
            log_dir=config.log_dir,
            publish=self.broadcaster.publish,
            opener=opener,
            read_timeout=config.serial.read_timeout,
        )
        self.reconciler = Reconciler(self.registry)
        self.store = ConfigStore(config.state_file)
        self.device_lister = device_lister or list_devices

        self._desired = DesiredState()
        self._desired_lock = threading.Lock()

    @property
    def desired(self) -> DesiredState:
        """The current in-memory desired state."""
        with self._desired_lock:
            return self._desired

    def start(self) -> list[ReconcileFailure]:
        """Load the saved desired state and open its ports."""
        try:
            self.load_config()
        except ConfigParseError as e:
            logger.error(f"Ignoring saved desired state: {e}")
        return self.reconcile()

    def shutdown(self) -> None:
        """Close every session and detach every observer."""
        logger.info("Shutting down serial monitor")
        self.registry.close_all()
        self.broadcaster.close()

    # --- Observers ---

    def attach(self, observer: Observer) -> list[ReconcileFailure]:
        """Attach an observer and reconcile, as on every client (re)connect."""
        self.broadcaster.attach(observer)
        return self.reconcile()

    def detach(self, observer_id: str) -> bool:
        return self.broadcaster.detach(observer_id)

    def reconcile(self) -> list[ReconcileFailure]:
        """Open missing ports from the desired state, publishing failures."""
        failures = self.reconciler.reconcile(self.desired)
        for failure in failures:
            self.broadcaster.publish(PortError(failure.path, failure.message))
        return failures

    # --- Port operations ---

    def open_port(self, path: str, baud_rate: Optional[int] = None) -> Optional[PortSession]:
        """Open a single port. Failures are published, not raised."""
        spec = PortSpec(path=path, baud_rate=baud_rate or self.config.serial.default_baud)
        try:
            return self.registry.open(spec)
        except OpenError as e:
            self.broadcaster.publish(PortError(path, e.message))
            return None

    def write_port(self, path: str, data: Union[str, bytes]) -> bool:
        """Write to a port. Returns False (and publishes) if it is not open."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        try:
            self.registry.write(path, data)
            return True
        except NotOpenError as e:
            self.broadcaster.publish(PortError(path, e.message))
            return False

    def close_port(self, path: str) -> bool:
        return self.registry.close(path)

    def list_ports(self) -> list[dict]:
        """List serial devices present on this machine."""
        return self.device_lister()

    def list_sessions(self) -> list[dict]:
        return self.registry.list_sessions()

    # --- Desired state ---

    def load_config(self) -> DesiredState:
        """
        Reload the desired state from the store.

        Raises:
            ConfigParseError: If the stored document is malformed; the
                in-memory state is left unchanged
        """
        state = self.store.load()
        with self._desired_lock:
            self._desired = state
        return state

    def save_config(self, document: Any) -> DesiredState:
        """
        Replace the desired state and reconcile against it.

        Args:
            document: Decoded desired-state document (dict) or DesiredState

        Returns:
            The saved state

        Raises:
            ConfigParseError: If the document is malformed; nothing is saved
        """
        state = document if isinstance(document, DesiredState) else DesiredState.from_dict(document)
        self.store.save(state)
        with self._desired_lock:
            self._desired = state

        self.broadcaster.publish(ConfigEvent("config-saved", state))
        self.reconcile()
        return state
