"""Virtual pin table for the mock daemon.

The mock daemon has no GPIO hardware, so pin values live in memory for the
lifetime of one connection.
"""
from __future__ import annotations

from typing import Dict


class PinTable:
    """Mapping of pin id to last written value.

    Pins that were never written read as 0, and reading a pin records it.
    """

    def __init__(self):
        self._pins: Dict[int, int] = {}

    def set(self, pin: int, value: int) -> None:
        self._pins[pin] = value

    def get(self, pin: int) -> int:
        return self._pins.setdefault(pin, 0)

    def snapshot(self) -> Dict[int, int]:
        """Copy of the current pin values."""
        return dict(self._pins)

    def __contains__(self, pin: int) -> bool:
        return pin in self._pins

    def __len__(self) -> int:
        return len(self._pins)
