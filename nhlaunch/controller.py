"""Gamepad input tracking for two controller ports."""

from __future__ import annotations

from typing import Callable, Optional

_ALL_BUTTONS = 0xFFFF
PORTS = 2

# Returns the raw, active-low button word of a port, or None if it cannot be read.
ButtonReader = Callable[[int], Optional[int]]


class Gamepad:
    """Reports pressed buttons on both gamepad ports."""

    def __init__(self, reader: ButtonReader) -> None:
        self._reader = reader
        self._previous = [0] * PORTS

    def _pressed(self, port: int) -> Optional[int]:
        raw = self._reader(port)
        if raw is None:
            return None
        return _ALL_BUTTONS ^ raw

    def read(self, port: int) -> int:
        """Return buttons pressed on ``port`` since the last reading."""
        pressed = self._pressed(port)
        if pressed is None:
            return 0
        newly = pressed & ~self._previous[port]
        self._previous[port] = pressed
        return newly

    def poll(self, port: int) -> int:
        """Return buttons currently held on ``port``."""
        pressed = self._pressed(port)
        if pressed is None:
            return 0
        self._previous[port] = pressed
        return pressed

    def wait_for_input(self, button: int) -> int:
        """Block until a newly pressed button matches ``button``; -1 matches any."""
        while True:
            current = self.read(0) | self.read(1)
            if current & button:
                return current

    def poll_input(self) -> int:
        """Return buttons currently held on either port."""
        return self.poll(0) | self.poll(1)