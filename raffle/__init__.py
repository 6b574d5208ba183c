"""
Raffle engine package.

A time-boxed lottery that collects paid entries, closes the round once its
interval has elapsed, and picks a winner from an asynchronously delivered
random value:
- engine      : the round state machine (enter / upkeep / fulfillment),
- oracle      : the randomness coordinator protocol and an in-process mock,
- keeper      : an automation loop that polls and performs upkeep,
- deploy      : bootstrap of coordinator subscription + engine per network,
- adapters    : FastAPI router for off-process callers.

Only light, stable exports are surfaced here to avoid import cycles.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]
