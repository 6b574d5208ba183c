"""
raffle.engine — the raffle round state machine.

One `Raffle` owns one round that is reused forever:

    OPEN --perform_upkeep--> CALCULATING --fulfill_random_words--> OPEN

- enter(player, amount)            : OPEN only; amount >= entrance fee; the
                                     whole amount joins the pot.
- check_upkeep()                   : pure readiness predicate for keepers.
- perform_upkeep()                 : re-checks readiness, locks the round and
                                     asks the coordinator for random words.
- raw_fulfill_random_words(...)    : coordinator callback; only the pending
                                     request id is accepted. Picks
                                     players[words[0] % n], pays the whole pot
                                     and reopens the round.

Every mutation runs under a single writer lock inside a transaction that
checkpoints the round and the ledger. Events are staged and published only
when the transaction commits; on any error the round, the ledger and the
staged events are all discarded and the error propagates.

A fulfillment whose payout fails rolls back completely and leaves the round
CALCULATING with the same pending request. Nothing in the engine retries or
times out such a round.
"""

from __future__ import annotations

import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .constants import EVENT_RAFFLE_ENTER, EVENT_REQUESTED_WINNER, EVENT_WINNER_PICKED, ZERO_ADDRESS
from .errors import (
    EmptyPlayerList,
    InsufficientFee,
    InsufficientFunds,
    IntegrityError,
    MissingRandomWords,
    OnlyCoordinatorCanFulfill,
    PayoutFailed,
    PlayerIndexOutOfRange,
    RaffleError,
    RoundNotOpen,
    TransferRejected,
    UnknownRequest,
    UpkeepNotNeeded,
)
from .metrics import METRICS, Metrics
from .oracle.base import RandomnessCoordinator
from .state.events import EventLog, InMemoryEventLog
from .state.ledger import Ledger
from .types.core import (
    Address,
    RaffleParams,
    RaffleState,
    RandomnessRequest,
    RequestId,
    RoundSnapshot,
    UpkeepCheck,
    WinnerRecord,
)
from .utils.address import derive_address, normalize_address
from .utils.time import Clock, SystemClock

log = logging.getLogger(__name__)

_DEPLOY_NONCE = itertools.count(1)

_ENTRY_OUTCOMES = (
    (InsufficientFee, "insufficient_fee"),
    (RoundNotOpen, "not_open"),
    (InsufficientFunds, "insufficient_funds"),
)

_FULFILL_OUTCOMES = (
    (UnknownRequest, "unknown_request"),
    (EmptyPlayerList, "empty_players"),
    (MissingRandomWords, "missing_words"),
    (OnlyCoordinatorCanFulfill, "unauthorized"),
    (PayoutFailed, "payout_failed"),
)


def _outcome(exc: BaseException, table: Tuple[Tuple[type, str], ...]) -> str:
    for cls, name in table:
        if isinstance(exc, cls):
            return name
    return "error"


# Saved round fields, restored verbatim on rollback.
_RoundState = Tuple[RaffleState, List[Address], int, Optional[RandomnessRequest], Address, Optional[WinnerRecord], int]


class Raffle:
    """
    Parameters
    ----------
    params : RaffleParams
        Entrance fee, interval and the randomness request parameters.
    coordinator : RandomnessCoordinator
        The oracle requests go to; its address is the only accepted caller of
        `raw_fulfill_random_words`.
    ledger : Ledger
        Balance book holding players' funds and the pot (under `address`).
    clock / events / metrics / address
        Injected collaborators; defaults are wall clock, an in-memory event
        log, the process METRICS and a freshly derived address.
    """

    def __init__(
        self,
        params: RaffleParams,
        coordinator: RandomnessCoordinator,
        *,
        ledger: Ledger,
        clock: Optional[Clock] = None,
        events: Optional[EventLog] = None,
        metrics: Optional[Metrics] = None,
        address: Optional[str] = None,
    ) -> None:
        self.params = params
        self.coordinator = coordinator
        self.ledger = ledger
        self.clock: Clock = clock or SystemClock()
        self.events: EventLog = events if events is not None else InMemoryEventLog()
        self.metrics = metrics or METRICS
        self.address = Address(normalize_address(address) if address else derive_address(f"Raffle/{next(_DEPLOY_NONCE)}"))

        self._lock = threading.RLock()
        self._accepting = False

        self._state = RaffleState.OPEN
        self._players: List[Address] = []
        self._last_timestamp = self.clock.now()
        self._pending: Optional[RandomnessRequest] = None
        self._recent_winner = Address(ZERO_ADDRESS)
        self._last_payout: Optional[WinnerRecord] = None
        self._round_no = 1

        # Only enter() may move money into the pot.
        self.ledger.set_receive_hook(self.address, self._on_receive)
        log.info(
            "raffle constructed",
            extra={
                "raffle": self.address,
                "entrance_fee": params.entrance_fee,
                "interval": params.interval,
                "subscription_id": params.subscription_id,
            },
        )

    # ------------------------------------------------------------------ plumbing

    def _on_receive(self, sender: str, amount: int) -> bool:
        return self._accepting

    def _save(self) -> _RoundState:
        return (
            self._state,
            list(self._players),
            self._last_timestamp,
            self._pending,
            self._recent_winner,
            self._last_payout,
            self._round_no,
        )

    def _restore(self, saved: _RoundState) -> None:
        (
            self._state,
            self._players,
            self._last_timestamp,
            self._pending,
            self._recent_winner,
            self._last_payout,
            self._round_no,
        ) = saved

    @contextmanager
    def _transaction(self) -> Iterator[List[Tuple[str, Dict[str, Any]]]]:
        """
        All-or-nothing scope for one mutating call. Yields the list events are
        staged into; they are published only after the ledger commits.
        """
        with self._lock:
            saved = self._save()
            staged: List[Tuple[str, Dict[str, Any]]] = []
            try:
                with self.ledger.atomic():
                    yield staged
            except BaseException:
                self._restore(saved)
                raise
            now = self.clock.now()
            for name, args in staged:
                self.events.emit(self.address, name, args, timestamp=now)
            self.metrics.observe_round(pot_wei=self.balance, players=len(self._players))

    def _evaluate(self) -> UpkeepCheck:
        is_open = self._state is RaffleState.OPEN
        time_passed = (self.clock.now() - self._last_timestamp) >= self.params.interval
        has_players = len(self._players) > 0
        has_balance = self.balance > 0
        return UpkeepCheck(
            upkeep_needed=is_open and time_passed and has_players and has_balance,
            perform_data=b"",
            is_open=is_open,
            time_passed=time_passed,
            has_players=has_players,
            has_balance=has_balance,
        )

    # ------------------------------------------------------------------- entries

    def enter(self, player: str, paid_amount: int) -> None:
        """
        Join the current round paying `paid_amount` wei from `player`'s account.

        Raises InsufficientFee, RoundNotOpen or InsufficientFunds; nothing
        changes on failure. Overpayment stays in the pot. A non-integer
        amount is a TypeError; convert ether with parse_ether first.
        """
        if isinstance(paid_amount, bool) or not isinstance(paid_amount, int):
            raise TypeError(f"paid_amount must be integer wei, got {type(paid_amount).__name__}")
        amount = paid_amount
        try:
            addr = Address(normalize_address(player))
            with self._transaction() as staged:
                if amount < self.params.entrance_fee:
                    raise InsufficientFee(amount, self.params.entrance_fee)
                if self._state is not RaffleState.OPEN:
                    raise RoundNotOpen(self._state)
                self._accepting = True
                try:
                    self.ledger.transfer(addr, self.address, amount)
                finally:
                    self._accepting = False
                self._players.append(addr)
                staged.append((EVENT_RAFFLE_ENTER, {"player": addr}))
        except RaffleError as exc:
            self.metrics.record_entry(_outcome(exc, _ENTRY_OUTCOMES))
            log.debug("entry rejected", extra={"raffle": self.address, "error": exc.code})
            raise
        self.metrics.record_entry("accepted")
        log.debug("entry recorded", extra={"raffle": self.address, "player": addr, "amount": amount})

    # -------------------------------------------------------------------- upkeep

    def check_upkeep(self, check_data: bytes = b"") -> UpkeepCheck:
        """Readiness predicate; never mutates. `check_data` is accepted and ignored."""
        with self._lock:
            return self._evaluate()

    def perform_upkeep(self, perform_data: bytes = b"") -> RequestId:
        """
        Close the round and request randomness. Returns the request id.

        Re-evaluates the upkeep conditions and raises UpkeepNotNeeded when any
        fails, so a second call while CALCULATING is always rejected. If the
        coordinator rejects the request the round stays OPEN.
        """
        try:
            with self._transaction() as staged:
                check = self._evaluate()
                if not check.upkeep_needed:
                    raise UpkeepNotNeeded(self.balance, len(self._players), self._state)
                if self._pending is not None:
                    raise IntegrityError(
                        "a randomness request is already pending",
                        details={"pending": int(self._pending.request_id)},
                    )
                self._state = RaffleState.CALCULATING
                request_id = int(
                    self.coordinator.request_random_words(
                        self.params.key_hash,
                        self.params.subscription_id,
                        self.params.request_confirmations,
                        self.params.callback_gas_limit,
                        self.params.num_words,
                        requester=self.address,
                    )
                )
                if request_id <= 0:
                    raise IntegrityError("coordinator returned an invalid request id", details={"request_id": request_id})
                round_ref = self._round_no
                self._pending = RandomnessRequest(
                    request_id=RequestId(request_id),
                    consumer=self.address,
                    round_ref=round_ref,
                    requested_at=self.clock.now(),
                )
                staged.append((EVENT_REQUESTED_WINNER, {"request_id": request_id}))
        except UpkeepNotNeeded:
            self.metrics.record_upkeep("not_needed")
            raise
        except RaffleError as exc:
            self.metrics.record_upkeep("request_failed")
            log.warning("randomness request failed", extra={"raffle": self.address, "error": exc.code})
            raise
        self.metrics.record_upkeep("performed")
        log.info(
            "upkeep performed",
            extra={"raffle": self.address, "request_id": request_id, "round": round_ref},
        )
        return RequestId(request_id)

    # --------------------------------------------------------------- fulfillment

    def raw_fulfill_random_words(self, caller: str, request_id: int, random_words: Sequence[int]) -> None:
        """Coordinator callback. Rejects any caller other than the coordinator."""
        have = normalize_address(caller)
        want = normalize_address(self.coordinator.address)
        if have != want:
            self.metrics.record_fulfillment("unauthorized")
            raise OnlyCoordinatorCanFulfill(have, want)
        self.fulfill_random_words(request_id, random_words)

    def fulfill_random_words(self, request_id: int, random_words: Sequence[int]) -> WinnerRecord:
        """
        Consume the answer to the pending request: pick, pay, reopen.

        Raises UnknownRequest (not the pending id), EmptyPlayerList,
        MissingRandomWords or PayoutFailed; in every case the round, the pot
        and the event log are exactly as before the call.
        """
        try:
            with self._transaction() as staged:
                pending = self._pending
                if pending is None or int(request_id) != int(pending.request_id):
                    raise UnknownRequest(int(request_id), None if pending is None else int(pending.request_id))
                if not self._players:
                    raise EmptyPlayerList(int(request_id))
                if len(random_words) == 0:
                    raise MissingRandomWords(int(request_id))

                winner = self._players[int(random_words[0]) % len(self._players)]
                amount = self.balance
                try:
                    self.ledger.transfer(self.address, winner, amount)
                except (TransferRejected, InsufficientFunds) as exc:
                    raise PayoutFailed(winner, amount, reason=exc.message) from exc

                now = self.clock.now()
                record = WinnerRecord(
                    winner=winner,
                    amount=amount,
                    round_ref=pending.round_ref,
                    request_id=pending.request_id,
                    timestamp=now,
                )
                self._recent_winner = winner
                self._last_payout = record
                self._players = []
                self._state = RaffleState.OPEN
                self._last_timestamp = now
                self._pending = None
                self._round_no += 1
                staged.append((EVENT_WINNER_PICKED, {"winner": winner}))
        except RaffleError as exc:
            self.metrics.record_fulfillment(_outcome(exc, _FULFILL_OUTCOMES))
            level = logging.ERROR if isinstance(exc, PayoutFailed) else logging.WARNING
            log.log(level, "fulfillment rejected", extra={"raffle": self.address, "request_id": int(request_id), "error": exc.code})
            raise
        self.metrics.record_fulfillment("fulfilled")
        self.metrics.observe_payout(record.amount, record.timestamp - pending.requested_at)
        log.info(
            "winner picked",
            extra={"raffle": self.address, "winner": record.winner, "amount": record.amount, "round": record.round_ref},
        )
        return record

    # ------------------------------------------------------------------- queries

    @property
    def entrance_fee(self) -> int:
        return self.params.entrance_fee

    @property
    def interval(self) -> int:
        return self.params.interval

    @property
    def num_words(self) -> int:
        return self.params.num_words

    @property
    def request_confirmations(self) -> int:
        return self.params.request_confirmations

    @property
    def subscription_id(self) -> int:
        return self.params.subscription_id

    def get_player(self, index: int) -> Address:
        with self._lock:
            if not 0 <= index < len(self._players):
                raise PlayerIndexOutOfRange(index, len(self._players))
            return self._players[index]

    @property
    def players(self) -> Tuple[Address, ...]:
        with self._lock:
            return tuple(self._players)

    @property
    def num_players(self) -> int:
        with self._lock:
            return len(self._players)

    @property
    def last_timestamp(self) -> int:
        with self._lock:
            return self._last_timestamp

    @property
    def state(self) -> RaffleState:
        with self._lock:
            return self._state

    @property
    def recent_winner(self) -> Address:
        with self._lock:
            return self._recent_winner

    @property
    def pending_request_id(self) -> Optional[RequestId]:
        with self._lock:
            return None if self._pending is None else self._pending.request_id

    @property
    def pending_request(self) -> Optional[RandomnessRequest]:
        with self._lock:
            return self._pending

    @property
    def balance(self) -> int:
        return self.ledger.balance_of(self.address)

    @property
    def round_no(self) -> int:
        with self._lock:
            return self._round_no

    def snapshot(self) -> RoundSnapshot:
        with self._lock:
            return RoundSnapshot(
                state=self._state,
                round_no=self._round_no,
                entrance_fee=self.params.entrance_fee,
                interval=self.params.interval,
                last_timestamp=self._last_timestamp,
                players=tuple(self._players),
                balance=self.balance,
                pending_request_id=None if self._pending is None else self._pending.request_id,
                recent_winner=self._recent_winner,
                last_payout=self._last_payout,
            )

    def __repr__(self) -> str:
        return f"Raffle(address={self.address}, state={self._state.name}, players={len(self._players)})"


__all__ = ["Raffle"]
