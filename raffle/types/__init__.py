"""
Typed records shared by the engine, the coordinator and the adapters.
"""

from __future__ import annotations

from .core import (
    Address,
    RaffleParams,
    RaffleState,
    RandomnessRequest,
    RequestId,
    RoundSnapshot,
    SubscriptionId,
    UpkeepCheck,
    WinnerRecord,
)
from .events import EventRecord

__all__ = [
    "Address",
    "RequestId",
    "SubscriptionId",
    "RaffleState",
    "RaffleParams",
    "RandomnessRequest",
    "WinnerRecord",
    "UpkeepCheck",
    "RoundSnapshot",
    "EventRecord",
]
