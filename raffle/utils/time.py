"""
raffle.utils.time
=================

Clock sources for the engine. The engine never reads the wall clock directly;
it asks an injected clock for "now" in integer epoch seconds, the same
granularity as a block timestamp.

- SystemClock : wall clock, floored to seconds.
- ManualClock : fixed time that tests advance explicitly (like bumping the
                chain's next block timestamp).
"""

from __future__ import annotations

import threading
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    def now(self) -> int:
        """Current time in integer epoch seconds."""


class SystemClock:
    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """A settable clock. Time never moves unless told to."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        if start < 0:
            raise ValueError("start must be non-negative")
        self._now = int(start)
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("cannot move a clock backwards")
        with self._lock:
            self._now += int(seconds)
            return self._now

    def set(self, ts: int) -> None:
        with self._lock:
            if ts < self._now:
                raise ValueError(f"cannot move a clock backwards ({ts} < {self._now})")
            self._now = int(ts)


__all__ = ["Clock", "SystemClock", "ManualClock"]
