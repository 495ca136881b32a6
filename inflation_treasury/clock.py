"""
Logical Clock Module

The host environment supplies a monotonically increasing step counter that
stands in for wall-clock time. The treasury only ever reads it.
"""

from abc import ABC, abstractmethod
import threading


class LogicalClock(ABC):
    """Read-only source of logical time"""

    @abstractmethod
    def now(self) -> int:
        """Current logical time"""
        pass


class ManualClock(LogicalClock):
    """Clock driven explicitly by the host (or by tests)"""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError("Logical time cannot be negative")
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def advance(self, units: int) -> int:
        """Move time forward by ``units`` and return the new time"""
        if units < 0:
            raise ValueError("Logical time is monotonic; cannot advance by a negative amount")
        with self._lock:
            self._now += units
            return self._now

    def set(self, value: int) -> None:
        """Jump to an absolute time at or after the current one"""
        with self._lock:
            if value < self._now:
                raise ValueError(f"Logical time is monotonic: {value} < {self._now}")
            self._now = value
