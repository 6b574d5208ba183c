"""
raffle.errors
-------------

Exception hierarchy for the raffle engine, its ledger and the randomness
coordinator.

Every operation that fails raises exactly one of these; the engine rolls back
the triggering call and leaves previously committed state untouched. Callers
(keepers, RPC adapters, tests) branch on the class or on the stable `code`.

Families
~~~~~~~~
- ValidationError   : bad input (fee too low, round closed, bad index).
                      Recoverable by retrying correctly.
- PreconditionError : upkeep was not actually due. Re-poll.
- IntegrityError    : foreign/stale request id, empty round at fulfillment,
                      callback from someone other than the coordinator.
- PayoutError       : winner could not be paid; fulfillment rolled back and
                      the round stays CALCULATING.
- LedgerError       : balance book refused a movement.
- OracleError       : coordinator-side subscription/request failures.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


def _truncate(data: Any, max_len: int = 256) -> Any:
    """
    Shorten large strings/bytes and containers for safe inclusion in details.
    """
    if isinstance(data, (bytes, bytearray)):
        if len(data) <= max_len:
            return "0x" + bytes(data).hex()
        return "0x" + bytes(data[:max_len]).hex() + "..."
    if isinstance(data, str):
        return data if len(data) <= max_len else data[:max_len] + "..."
    if isinstance(data, (list, tuple)):
        return [_truncate(x, max_len) for x in data[:16]] + (["..."] if len(data) > 16 else [])
    if isinstance(data, dict):
        return {str(k): _truncate(v, max_len) for k, v in data.items()}
    return data


def _state_name(state: Any) -> str:
    return getattr(state, "name", str(state))


class RaffleError(Exception):
    """
    Base class for raffle errors.

    Attributes
    ----------
    code : str
        Stable, upper-snake ASCII identifier (e.g., 'INSUFFICIENT_FEE').
    message : str
        Human-friendly explanation.
    details : dict
        Structured data safe to expose over RPC and in logs.
    """

    code: str = "RAFFLE_ERROR"

    def __init__(self, message: str = "raffle error", *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = _truncate(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


# ----------------------------------------------------------------------------
# Families
# ----------------------------------------------------------------------------


class ValidationError(RaffleError):
    code = "VALIDATION_ERROR"


class PreconditionError(RaffleError):
    code = "PRECONDITION_ERROR"


class IntegrityError(RaffleError):
    code = "INTEGRITY_ERROR"


class PayoutError(RaffleError):
    code = "PAYOUT_ERROR"


class LedgerError(RaffleError):
    code = "LEDGER_ERROR"


class OracleError(RaffleError):
    code = "ORACLE_ERROR"


class ConfigError(RaffleError, ValueError):
    code = "CONFIG_ERROR"


# ----------------------------------------------------------------------------
# Entry ledger
# ----------------------------------------------------------------------------


class InsufficientFee(ValidationError):
    code = "INSUFFICIENT_FEE"

    def __init__(self, paid: int, required: int) -> None:
        super().__init__(
            f"not enough value sent to enter: paid {paid}, need {required}",
            details={"paid": int(paid), "required": int(required)},
        )
        self.paid = int(paid)
        self.required = int(required)


class RoundNotOpen(ValidationError):
    code = "ROUND_NOT_OPEN"

    def __init__(self, state: Any) -> None:
        super().__init__(
            f"raffle is not open (state={_state_name(state)})",
            details={"state": int(state), "state_name": _state_name(state)},
        )
        self.state = state


class InsufficientFunds(ValidationError):
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, address: str, balance: int, required: int) -> None:
        super().__init__(
            f"account {address} holds {balance}, needs {required}",
            details={"address": address, "balance": int(balance), "required": int(required)},
        )
        self.address = address
        self.balance = int(balance)
        self.required = int(required)


class PlayerIndexOutOfRange(ValidationError, IndexError):
    code = "PLAYER_INDEX_OUT_OF_RANGE"

    def __init__(self, index: int, size: int) -> None:
        super().__init__(
            f"player index {index} out of range (players={size})",
            details={"index": int(index), "size": int(size)},
        )
        self.index = int(index)
        self.size = int(size)


# ----------------------------------------------------------------------------
# Upkeep
# ----------------------------------------------------------------------------


class UpkeepNotNeeded(PreconditionError):
    code = "UPKEEP_NOT_NEEDED"

    def __init__(self, balance: int, num_players: int, state: Any) -> None:
        super().__init__(
            f"upkeep not needed (balance={balance}, players={num_players}, state={_state_name(state)})",
            details={
                "balance": int(balance),
                "num_players": int(num_players),
                "state": int(state),
            },
        )
        self.balance = int(balance)
        self.num_players = int(num_players)
        self.state = state


# ----------------------------------------------------------------------------
# Fulfillment
# ----------------------------------------------------------------------------


class UnknownRequest(IntegrityError):
    code = "UNKNOWN_REQUEST"

    def __init__(self, request_id: int, pending: Optional[int]) -> None:
        super().__init__(
            f"request {request_id} is not the pending request ({pending})",
            details={"request_id": int(request_id), "pending": pending},
        )
        self.request_id = int(request_id)
        self.pending = pending


class EmptyPlayerList(IntegrityError):
    code = "EMPTY_PLAYER_LIST"

    def __init__(self, request_id: int) -> None:
        super().__init__(
            f"no players to pick from for request {request_id}",
            details={"request_id": int(request_id)},
        )
        self.request_id = int(request_id)


class MissingRandomWords(IntegrityError):
    code = "MISSING_RANDOM_WORDS"

    def __init__(self, request_id: int) -> None:
        super().__init__(
            f"fulfillment for request {request_id} carried no random words",
            details={"request_id": int(request_id)},
        )
        self.request_id = int(request_id)


class OnlyCoordinatorCanFulfill(IntegrityError):
    code = "ONLY_COORDINATOR_CAN_FULFILL"

    def __init__(self, have: str, want: str) -> None:
        super().__init__(
            f"fulfillment from {have}, expected coordinator {want}",
            details={"have": have, "want": want},
        )
        self.have = have
        self.want = want


class PayoutFailed(PayoutError):
    code = "PAYOUT_FAILED"

    def __init__(self, winner: str, amount: int, reason: str = "transfer failed") -> None:
        super().__init__(
            f"payout of {amount} to {winner} failed: {reason}",
            details={"winner": winner, "amount": int(amount), "reason": reason},
        )
        self.winner = winner
        self.amount = int(amount)
        self.reason = reason


# ----------------------------------------------------------------------------
# Ledger
# ----------------------------------------------------------------------------


class NegativeAmount(LedgerError, ValueError):
    code = "NEGATIVE_AMOUNT"

    def __init__(self, amount: int) -> None:
        super().__init__(f"amount must be non-negative, got {amount}", details={"amount": int(amount)})
        self.amount = int(amount)


class TransferRejected(LedgerError):
    code = "TRANSFER_REJECTED"

    def __init__(self, sender: str, recipient: str, amount: int, reason: str = "recipient refused") -> None:
        super().__init__(
            f"transfer of {amount} from {sender} to {recipient} rejected: {reason}",
            details={"sender": sender, "recipient": recipient, "amount": int(amount), "reason": reason},
        )
        self.sender = sender
        self.recipient = recipient
        self.amount = int(amount)
        self.reason = reason


# ----------------------------------------------------------------------------
# Coordinator
# ----------------------------------------------------------------------------


class NonexistentRequest(OracleError):
    code = "NONEXISTENT_REQUEST"

    def __init__(self, request_id: int) -> None:
        super().__init__("nonexistent request", details={"request_id": int(request_id)})
        self.request_id = int(request_id)


class InvalidSubscription(OracleError):
    code = "INVALID_SUBSCRIPTION"

    def __init__(self, sub_id: int) -> None:
        super().__init__(f"invalid subscription {sub_id}", details={"sub_id": int(sub_id)})
        self.sub_id = int(sub_id)


class InvalidConsumer(OracleError):
    code = "INVALID_CONSUMER"

    def __init__(self, sub_id: int, consumer: str) -> None:
        super().__init__(
            f"{consumer} is not a consumer of subscription {sub_id}",
            details={"sub_id": int(sub_id), "consumer": consumer},
        )
        self.sub_id = int(sub_id)
        self.consumer = consumer


class TooManyConsumers(OracleError):
    code = "TOO_MANY_CONSUMERS"

    def __init__(self, sub_id: int) -> None:
        super().__init__(f"subscription {sub_id} has too many consumers", details={"sub_id": int(sub_id)})
        self.sub_id = int(sub_id)


class InsufficientSubscriptionBalance(OracleError):
    code = "INSUFFICIENT_SUBSCRIPTION_BALANCE"

    def __init__(self, sub_id: int, balance: int, required: int) -> None:
        super().__init__(
            f"subscription {sub_id} balance {balance} cannot cover payment {required}",
            details={"sub_id": int(sub_id), "balance": int(balance), "required": int(required)},
        )
        self.sub_id = int(sub_id)
        self.balance = int(balance)
        self.required = int(required)


class NumWordsTooBig(OracleError):
    code = "NUM_WORDS_TOO_BIG"

    def __init__(self, have: int, want: int) -> None:
        super().__init__(f"num_words {have} exceeds max {want}", details={"have": int(have), "want": int(want)})


class GasLimitTooBig(OracleError):
    code = "GAS_LIMIT_TOO_BIG"

    def __init__(self, have: int, want: int) -> None:
        super().__init__(
            f"callback_gas_limit {have} exceeds max {want}", details={"have": int(have), "want": int(want)}
        )


class InvalidRequestConfirmations(OracleError):
    code = "INVALID_REQUEST_CONFIRMATIONS"

    def __init__(self, have: int, min_: int, max_: int) -> None:
        super().__init__(
            f"request confirmations {have} outside [{min_}, {max_}]",
            details={"have": int(have), "min": int(min_), "max": int(max_)},
        )


__all__ = [
    "RaffleError",
    "ValidationError",
    "PreconditionError",
    "IntegrityError",
    "PayoutError",
    "LedgerError",
    "OracleError",
    "ConfigError",
    "InsufficientFee",
    "RoundNotOpen",
    "InsufficientFunds",
    "PlayerIndexOutOfRange",
    "UpkeepNotNeeded",
    "UnknownRequest",
    "EmptyPlayerList",
    "MissingRandomWords",
    "OnlyCoordinatorCanFulfill",
    "PayoutFailed",
    "NegativeAmount",
    "TransferRejected",
    "NonexistentRequest",
    "InvalidSubscription",
    "InvalidConsumer",
    "TooManyConsumers",
    "InsufficientSubscriptionBalance",
    "NumWordsTooBig",
    "GasLimitTooBig",
    "InvalidRequestConfirmations",
]
