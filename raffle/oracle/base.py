"""
Protocols at the randomness oracle boundary.

The engine only ever calls `request_random_words` and keeps the returned id.
Answers arrive later, on a separate call, through `raw_fulfill_random_words`
with the coordinator's own address as `caller`.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class RandomnessCoordinator(Protocol):
    @property
    def address(self) -> str: ...

    def request_random_words(
        self,
        key_hash: str,
        sub_id: int,
        minimum_request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
        *,
        requester: str,
    ) -> int:
        """Queue a request on behalf of `requester`; returns the request id (> 0)."""


@runtime_checkable
class VRFConsumer(Protocol):
    @property
    def address(self) -> str: ...

    def raw_fulfill_random_words(self, caller: str, request_id: int, random_words: Sequence[int]) -> None:
        """Deliver random words for a request previously issued by this consumer."""


__all__ = ["RandomnessCoordinator", "VRFConsumer"]
