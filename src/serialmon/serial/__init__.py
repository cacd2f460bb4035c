"""
Serial port sessions for serialmon.

Handles device sessions and their read loops, the session registry,
event fan-out to observers, per-port logs, and reconciliation.
"""

from serialmon.serial.broadcast import Broadcaster, CallbackObserver
from serialmon.serial.devices import list_devices
from serialmon.serial.logfile import LogAppender, log_filename
from serialmon.serial.reconcile import ReconcileFailure, Reconciler
from serialmon.serial.registry import PortRegistry
from serialmon.serial.session import PortSession, open_serial

__all__ = [
    "PortSession",
    "PortRegistry",
    "Broadcaster",
    "CallbackObserver",
    "LogAppender",
    "log_filename",
    "Reconciler",
    "ReconcileFailure",
    "list_devices",
    "open_serial",
]
