"""
Core typed primitives for the raffle engine.

Types provided:
  • Address           — canonical lower-case 0x hex account id
  • RequestId         — oracle-assigned randomness request token (> 0)
  • SubscriptionId    — coordinator subscription id (> 0 once created)
  • RaffleState       — OPEN / CALCULATING
  • RaffleParams      — immutable construction parameters of a raffle
  • RandomnessRequest — the single in-flight request of a round
  • WinnerRecord      — last payout, overwritten each round
  • UpkeepCheck       — dry-run result with each readiness condition broken out
  • RoundSnapshot     — consistent read-only view of the round
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, NewType, Optional, Tuple

from ..constants import (
    DEFAULT_CALLBACK_GAS_LIMIT,
    DEFAULT_NUM_WORDS,
    DEFAULT_REQUEST_CONFIRMATIONS,
    ZERO_ADDRESS,
)

# ---- Simple newtypes ---------------------------------------------------------

Address = NewType("Address", str)
RequestId = NewType("RequestId", int)
SubscriptionId = NewType("SubscriptionId", int)


def _require_nonneg(name: str, v: int) -> None:
    if v < 0:
        raise ValueError(f"{name} must be non-negative (got {v})")


def _require_positive(name: str, v: int) -> None:
    if v <= 0:
        raise ValueError(f"{name} must be > 0 (got {v})")


class RaffleState(IntEnum):
    OPEN = 0
    CALCULATING = 1


# ---- Parameters --------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RaffleParams:
    """
    Immutable raffle parameters, fixed at construction.

    Fields:
      entrance_fee          — minimum wei per entry
      interval              — seconds a round stays open before upkeep is due
      key_hash              — gas lane (32-byte hex) passed to the coordinator
      subscription_id       — coordinator subscription that pays for requests
      callback_gas_limit    — gas budget for the fulfillment callback
      request_confirmations — blocks the coordinator waits before answering
      num_words             — random words requested (only the first is used)
    """

    entrance_fee: int
    interval: int
    key_hash: str
    subscription_id: int
    callback_gas_limit: int = DEFAULT_CALLBACK_GAS_LIMIT
    request_confirmations: int = DEFAULT_REQUEST_CONFIRMATIONS
    num_words: int = DEFAULT_NUM_WORDS

    def __post_init__(self) -> None:  # type: ignore[override]
        _require_nonneg("entrance_fee", self.entrance_fee)
        _require_nonneg("interval", self.interval)
        _require_nonneg("subscription_id", self.subscription_id)
        _require_positive("callback_gas_limit", self.callback_gas_limit)
        _require_positive("request_confirmations", self.request_confirmations)
        _require_positive("num_words", self.num_words)
        kh = self.key_hash[2:] if self.key_hash.startswith("0x") else self.key_hash
        if len(kh) != 64:
            raise ValueError(f"key_hash must be 32 bytes of hex (got {self.key_hash!r})")
        bytes.fromhex(kh)


# ---- Records -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RandomnessRequest:
    """
    One in-flight call to the oracle.

    `round_ref` is the round number the request closes; a back-reference only.
    """

    request_id: RequestId
    consumer: Address
    round_ref: int
    requested_at: int

    def __post_init__(self) -> None:  # type: ignore[override]
        _require_positive("request_id", int(self.request_id))
        _require_positive("round_ref", self.round_ref)


@dataclass(frozen=True, slots=True)
class WinnerRecord:
    winner: Address
    amount: int
    round_ref: int
    request_id: RequestId
    timestamp: int


@dataclass(frozen=True, slots=True)
class UpkeepCheck:
    """
    Result of the readiness predicate.

    `upkeep_needed` is the conjunction of the four conditions; the individual
    flags are kept for diagnostics (keepers log which one failed).
    """

    upkeep_needed: bool
    perform_data: bytes = b""
    is_open: bool = False
    time_passed: bool = False
    has_players: bool = False
    has_balance: bool = False

    @property
    def failing(self) -> Tuple[str, ...]:
        names = ("is_open", "time_passed", "has_players", "has_balance")
        return tuple(n for n in names if not getattr(self, n))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "upkeep_needed": self.upkeep_needed,
            "perform_data": "0x" + self.perform_data.hex(),
            "is_open": self.is_open,
            "time_passed": self.time_passed,
            "has_players": self.has_players,
            "has_balance": self.has_balance,
        }


@dataclass(frozen=True, slots=True)
class RoundSnapshot:
    state: RaffleState
    round_no: int
    entrance_fee: int
    interval: int
    last_timestamp: int
    players: Tuple[Address, ...]
    balance: int
    pending_request_id: Optional[RequestId] = None
    recent_winner: Address = Address(ZERO_ADDRESS)
    last_payout: Optional[WinnerRecord] = field(default=None)

    @property
    def num_players(self) -> int:
        return len(self.players)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": int(self.state),
            "state_name": self.state.name,
            "round": self.round_no,
            "entrance_fee": self.entrance_fee,
            "interval": self.interval,
            "last_timestamp": self.last_timestamp,
            "players": list(self.players),
            "num_players": self.num_players,
            "balance": self.balance,
            "pending_request_id": self.pending_request_id,
            "recent_winner": self.recent_winner,
        }


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
]
