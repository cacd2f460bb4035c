"""
Socket.IO control channel for browser clients.

Every connected client is an observer of all port traffic. Clients open,
write to and close ports and load or save the desired state through the
events registered here.
"""

import logging
from typing import Any

from flask import request
from flask_socketio import SocketIO, emit

from serialmon.core.errors import ConfigParseError
from serialmon.core.models import parse_baud_rate
from serialmon.core.monitor import SerialMonitor

logger = logging.getLogger(__name__)


class SocketObserver:
    """Delivers broadcast events to one Socket.IO client."""

    def __init__(self, sio: SocketIO, sid: str):
        self.sio = sio
        self.sid = sid
        self.observer_id = sid

    def deliver(self, event: Any) -> None:
        self.sio.emit(event.name, event.to_payload(), to=self.sid)


def init_socketio(app, monitor: SerialMonitor, **kwargs) -> SocketIO:
    """Initialize SocketIO with Flask app."""
    sio = SocketIO(app, **kwargs)
    register_handlers(sio, monitor)
    return sio


def _port_path(data: Any) -> str | None:
    if isinstance(data, dict):
        path = data.get("path")
        if isinstance(path, str) and path:
            return path
    return None


def register_handlers(sio: SocketIO, monitor: SerialMonitor) -> None:
    """Register SocketIO event handlers."""

    @sio.on("connect")
    def handle_connect(auth=None):
        """Attach the client and bring ports in line with the desired state."""
        sid = request.sid
        logger.info(f"WebSocket client connected: {sid}")

        emit("config", monitor.desired.to_dict())
        emit("ports-list", monitor.list_ports())
        monitor.attach(SocketObserver(sio, sid))

    @sio.on("disconnect")
    def handle_disconnect(*args):
        """Detach the client."""
        sid = request.sid
        logger.info(f"WebSocket client disconnected: {sid}")
        monitor.detach(sid)

    @sio.on("list-ports")
    def handle_list_ports(*args):
        emit("ports-list", monitor.list_ports())

    @sio.on("open-port")
    def handle_open_port(data):
        """Open a port.

        Expected data: {"path": "/dev/ttyUSB0", "baudRate": 115200}
        """
        path = _port_path(data)
        if not path:
            emit("port-error", {"path": None, "error": "path required"})
            return

        baud_rate = data.get("baudRate")
        if baud_rate is not None:
            try:
                baud_rate = parse_baud_rate(baud_rate, path)
            except ConfigParseError as e:
                emit("port-error", {"path": path, "error": e.message})
                return

        monitor.open_port(path, baud_rate)

    @sio.on("write-port")
    def handle_write_port(data):
        """Write to a port.

        Expected data: {"path": "/dev/ttyUSB0", "data": "AT\\r\\n"}
        """
        path = _port_path(data)
        if not path:
            emit("port-error", {"path": None, "error": "path required"})
            return

        payload = data.get("data", "")
        if not isinstance(payload, (str, bytes)):
            emit("port-error", {"path": path, "error": "data must be text or bytes"})
            return

        monitor.write_port(path, payload)

    @sio.on("close-port")
    def handle_close_port(data):
        """Close a port.

        Expected data: {"path": "/dev/ttyUSB0"}
        """
        path = _port_path(data)
        if path:
            monitor.close_port(path)

    @sio.on("save-config")
    def handle_save_config(data):
        """Replace the desired state; every client gets config-saved."""
        try:
            monitor.save_config(data)
        except ConfigParseError as e:
            logger.warning(f"Rejected config from {request.sid}: {e}")
            emit("config-error", {"error": str(e)})
        except OSError as e:
            logger.error(f"Failed to save config: {e}")
            emit("config-error", {"error": f"Failed to save config: {e}"})

    @sio.on("load-config")
    def handle_load_config(*args):
        """Reload the desired state from disk."""
        try:
            state = monitor.load_config()
        except ConfigParseError as e:
            logger.warning(f"Failed to load config: {e}")
            emit("config-error", {"error": str(e)})
            return
        emit("config", state.to_dict())
