"""
Flask application factory for the serialmon web interface.
"""

from typing import Callable, Optional

from flask import Flask, current_app, g

from serialmon.core.config import Config, load_config
from serialmon.core.monitor import SerialMonitor
from serialmon.serial.session import Opener


def create_app(
    config: Config | None = None,
    opener: Optional[Opener] = None,
    device_lister: Optional[Callable[[], list[dict]]] = None,
    start: bool = True,
) -> Flask:
    """
    Create and configure Flask application.

    Args:
        config: Optional Config instance. If None, loads from default location.
        opener: Optional device opener, mainly for tests
        device_lister: Optional device enumeration override
        start: Load the saved desired state and open its ports

    Returns:
        Configured Flask application with Socket.IO attached
    """
    app = Flask(__name__)

    if config is None:
        config = load_config()

    app.config["SERIALMON_CONFIG"] = config
    app.config["SECRET_KEY"] = "serialmon-dev-key"  # Change in production

    monitor = SerialMonitor(config, opener=opener, device_lister=device_lister)
    app.extensions["serialmon"] = monitor

    from serialmon.web.api import api_bp
    from serialmon.web.websocket import init_socketio

    app.register_blueprint(api_bp, url_prefix="/api")
    init_socketio(app, monitor, async_mode="threading")

    @app.before_request
    def before_request():
        """Expose the monitor for each request."""
        g.monitor = app.extensions["serialmon"]
        g.config = app.config["SERIALMON_CONFIG"]

    if start:
        monitor.start()

    return app


def get_monitor() -> SerialMonitor:
    """Get the serial monitor for the current application."""
    return current_app.extensions["serialmon"]
