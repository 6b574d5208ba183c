"""
raffle.tests
------------
Test package for the raffle engine.

Notes:
- All tests run against the in-process mock coordinator and a ManualClock;
  nothing touches a network or the wall clock except the keeper loop tests,
  which sleep for a few milliseconds.
- Each test builds its own Metrics on a fresh CollectorRegistry.
"""

from __future__ import annotations

__all__: tuple[str, ...] = ()
