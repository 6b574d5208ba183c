"""
Randomness oracle boundary: the coordinator protocol the engine calls, the
consumer protocol the coordinator calls back, and an in-process mock
coordinator for development chains and tests.
"""

from __future__ import annotations

from .base import RandomnessCoordinator, VRFConsumer
from .mock import FulfillmentResult, MockVRFCoordinator, Subscription

__all__ = [
    "RandomnessCoordinator",
    "VRFConsumer",
    "MockVRFCoordinator",
    "Subscription",
    "FulfillmentResult",
]
