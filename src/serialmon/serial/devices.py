"""
Serial device enumeration.
"""

from serial.tools import list_ports


def list_devices() -> list[dict]:
    """List serial devices present on this machine."""
    return [
        {
            "path": p.device,
            "description": p.description,
            "hwid": p.hwid,
            "manufacturer": p.manufacturer,
            "serialNumber": p.serial_number,
            "vendorId": f"{p.vid:04x}" if p.vid is not None else None,
            "productId": f"{p.pid:04x}" if p.pid is not None else None,
        }
        for p in sorted(list_ports.comports(), key=lambda p: p.device)
    ]
