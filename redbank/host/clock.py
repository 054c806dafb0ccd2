"""Manually advanced block clock."""
from __future__ import annotations


class BlockClock:
    def __init__(self, time: int = 0) -> None:
        self._time = time

    def now(self) -> int:
        return self._time

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError(f"Cannot move the clock backwards by {seconds}s")
        self._time += seconds
        return self._time

    def set(self, time: int) -> None:
        if time < self._time:
            raise ValueError(f"Cannot move the clock from {self._time} back to {time}")
        self._time = time
