"""
REST API endpoints for serialmon.
"""

import logging

from flask import Blueprint, g, jsonify, request

from serialmon import __version__
from serialmon.core.errors import ConfigParseError
from serialmon.core.models import parse_baud_rate

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


# --- Session Endpoints ---

@api_bp.route("/sessions", methods=["GET"])
def list_sessions():
    """List all port sessions."""
    sessions = g.monitor.list_sessions()
    return jsonify({
        "sessions": sessions,
        "count": len(sessions),
    })


@api_bp.route("/sessions", methods=["POST"])
def open_session():
    """Open a port session."""
    data = request.get_json(silent=True)
    if not data or not data.get("path"):
        return jsonify({"error": "path is required"}), 400

    baud_rate = data.get("baudRate")
    if baud_rate is not None:
        try:
            baud_rate = parse_baud_rate(baud_rate, data["path"])
        except ConfigParseError as e:
            return jsonify({"error": e.message}), 400

    session = g.monitor.open_port(data["path"], baud_rate)
    if session is None:
        return jsonify({"error": f"Cannot open {data['path']}"}), 502

    return jsonify(session.to_dict()), 201


@api_bp.route("/sessions/<path:port_path>", methods=["DELETE"])
def close_session(port_path: str):
    """Close a port session."""
    # Flask strips the leading slash of device paths
    path = port_path if g.monitor.registry.get(port_path) else f"/{port_path}"

    if g.monitor.close_port(path):
        return jsonify({"message": f"Port '{path}' closed"}), 200
    return jsonify({"error": f"Port '{port_path}' not open"}), 404


# --- Device Endpoints ---

@api_bp.route("/devices", methods=["GET"])
def list_devices():
    """List serial devices present on this machine."""
    devices = g.monitor.list_ports()
    return jsonify({
        "devices": devices,
        "count": len(devices),
    })


# --- Desired State Endpoints ---

@api_bp.route("/config", methods=["GET"])
def get_config():
    """Get the current desired state."""
    return jsonify(g.monitor.desired.to_dict())


@api_bp.route("/config", methods=["PUT"])
def save_config():
    """Replace the desired state and open its ports."""
    data = request.get_json(silent=True)
    if data is None:
        return jsonify({"error": "JSON body is required"}), 400

    try:
        state = g.monitor.save_config(data)
    except ConfigParseError as e:
        return jsonify({"error": str(e)}), 400
    except OSError as e:
        logger.error(f"Failed to save config: {e}")
        return jsonify({"error": f"Failed to save config: {e}"}), 500

    return jsonify(state.to_dict())


# --- Status Endpoints ---

@api_bp.route("/health", methods=["GET"])
def health_check():
    """System health check."""
    return jsonify({
        "status": "healthy",
        "version": __version__,
        "sessions": len(g.monitor.registry.sessions()),
        "observers": g.monitor.broadcaster.observer_count,
    })
