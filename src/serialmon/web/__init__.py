"""
Web interface for serialmon.

Provides the Socket.IO control channel and a REST API.
"""

from serialmon.web.app import create_app

__all__ = ["create_app"]
