"""Reservation of stcp ports."""

from __future__ import annotations

import threading
from typing import Callable, Optional

PORTER_MIN_EPHEMERAL = 49152
_MAX_PORT = 0xFFFF


class PortsExhaustedError(RuntimeError):
    """Raised when no ephemeral port is free."""


class Porter:
    """Keeps track of reserved ports and hands out ephemeral ones."""

    def __init__(self, min_ephemeral: int = PORTER_MIN_EPHEMERAL) -> None:
        self._eph = min_ephemeral
        self._min_eph = min_ephemeral
        self._ports: set[int] = {0}  # port 0 is invalid
        self._lock = threading.Lock()

    def reserve(self, port: int) -> Optional[Callable[[], None]]:
        """Reserve a port; return a function that frees it, or None if taken."""
        with self._lock:
            if port in self._ports:
                return None
            self._ports.add(port)
            return self._freer(port)

    def reserve_ephemeral(self) -> tuple[int, Callable[[], None]]:
        """Pick the next free ephemeral port; return it with its freeing function."""
        with self._lock:
            for _ in range(_MAX_PORT + 1 - self._min_eph):
                self._eph = (self._eph + 1) & _MAX_PORT
                if self._eph < self._min_eph:
                    self._eph = self._min_eph
                if self._eph not in self._ports:
                    return self._eph, self._freer(self._eph)
            raise PortsExhaustedError("no free ephemeral port")

    def _freer(self, port: int) -> Callable[[], None]:
        freed = threading.Event()

        def free() -> None:
            with self._lock:
                if freed.is_set():
                    return
                freed.set()
                self._ports.discard(port)

        return free