"""
Serial Monitor (serialmon).

Shared control plane for watching and driving several serial devices at
once from any number of browser clients.
"""

__version__ = "0.1.0"
