"""
raffle.oracle.mock — in-process randomness coordinator for development chains.

Behaves like the on-chain VRF coordinator v2 mock:

- Subscriptions are created with ids starting at 1, funded with LINK (juels),
  and hold the list of consumers allowed to request.
- `request_random_words` validates the subscription, the requesting consumer
  and the request bounds. It assigns request ids starting at 1 and records
  the request until someone fulfills it.
- `fulfill_random_words` is the test/dev-side trigger that answers a request.
  It charges the subscription `base_fee + callback_gas_limit * gas_price_link`,
  calls back the consumer and deletes the request. A consumer that rejects
  the callback with a RaffleError does not fail the coordinator: the result
  (and the RandomWordsFulfilled event) carries success=False and the request
  is still consumed.

Nothing here knows about raffles; any `VRFConsumer` works.
"""

from __future__ import annotations

import hashlib
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..constants import (
    BASE_FEE,
    EVENT_CONSUMER_ADDED,
    EVENT_CONSUMER_REMOVED,
    EVENT_RANDOM_WORDS_FULFILLED,
    EVENT_RANDOM_WORDS_REQUESTED,
    EVENT_SUBSCRIPTION_CREATED,
    EVENT_SUBSCRIPTION_FUNDED,
    GAS_PRICE_LINK,
    MAX_CONSUMERS,
    MAX_GAS_LIMIT,
    MAX_NUM_WORDS,
    MAX_REQUEST_CONFIRMATIONS,
    MIN_REQUEST_CONFIRMATIONS,
    ZERO_ADDRESS,
)
from ..errors import (
    GasLimitTooBig,
    InsufficientSubscriptionBalance,
    InvalidConsumer,
    InvalidRequestConfirmations,
    InvalidSubscription,
    NonexistentRequest,
    NumWordsTooBig,
    OracleError,
    RaffleError,
    TooManyConsumers,
)
from ..state.events import EventLog, InMemoryEventLog
from ..utils.address import derive_address, normalize_address
from .base import VRFConsumer

log = logging.getLogger(__name__)

_WORD_DOMAIN = b"raffle.vrf.mock.word.v1"


def expand_words(request_id: int, num_words: int) -> Tuple[int, ...]:
    """Deterministic 256-bit words for a request: sha3_256(domain || id || index)."""
    out = []
    for i in range(num_words):
        h = hashlib.sha3_256(_WORD_DOMAIN + int(request_id).to_bytes(32, "big") + i.to_bytes(32, "big"))
        out.append(int.from_bytes(h.digest(), "big"))
    return tuple(out)


@dataclass
class Subscription:
    sub_id: int
    owner: str
    balance: int = 0
    req_count: int = 0
    consumers: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PendingRequest:
    request_id: int
    sub_id: int
    key_hash: str
    minimum_request_confirmations: int
    callback_gas_limit: int
    num_words: int
    sender: str


@dataclass(frozen=True)
class FulfillmentResult:
    request_id: int
    random_words: Tuple[int, ...]
    payment: int
    success: bool
    error: Optional[RaffleError] = None


class MockVRFCoordinator:
    def __init__(
        self,
        base_fee: int = BASE_FEE,
        gas_price_link: int = GAS_PRICE_LINK,
        *,
        events: Optional[EventLog] = None,
        address: Optional[str] = None,
    ) -> None:
        if base_fee < 0 or gas_price_link < 0:
            raise ValueError("base_fee and gas_price_link must be non-negative")
        self.base_fee = int(base_fee)
        self.gas_price_link = int(gas_price_link)
        self.events: EventLog = events if events is not None else InMemoryEventLog()
        self._address = normalize_address(address) if address else derive_address("VRFCoordinatorV2Mock")
        self._lock = threading.RLock()
        self._subs: Dict[int, Subscription] = {}
        self._requests: Dict[int, PendingRequest] = {}
        self._next_sub = itertools.count(1)
        self._next_request = itertools.count(1)

    @property
    def address(self) -> str:
        return self._address

    def _emit(self, name: str, **args: object) -> None:
        self.events.emit(self._address, name, args)

    # ------------------------------------------------------------ subscriptions

    def _sub(self, sub_id: int) -> Subscription:
        sub = self._subs.get(int(sub_id))
        if sub is None:
            raise InvalidSubscription(sub_id)
        return sub

    def create_subscription(self, owner: str = ZERO_ADDRESS) -> int:
        with self._lock:
            sub_id = next(self._next_sub)
            self._subs[sub_id] = Subscription(sub_id=sub_id, owner=normalize_address(owner))
        self._emit(EVENT_SUBSCRIPTION_CREATED, sub_id=sub_id, owner=normalize_address(owner))
        log.info("subscription created", extra={"sub_id": sub_id})
        return sub_id

    def fund_subscription(self, sub_id: int, amount: int) -> int:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        with self._lock:
            sub = self._sub(sub_id)
            old = sub.balance
            sub.balance += int(amount)
            new = sub.balance
        self._emit(EVENT_SUBSCRIPTION_FUNDED, sub_id=int(sub_id), old_balance=old, new_balance=new)
        return new

    def get_subscription(self, sub_id: int) -> Subscription:
        with self._lock:
            sub = self._sub(sub_id)
            return Subscription(
                sub_id=sub.sub_id,
                owner=sub.owner,
                balance=sub.balance,
                req_count=sub.req_count,
                consumers=list(sub.consumers),
            )

    def add_consumer(self, sub_id: int, consumer: str) -> None:
        addr = normalize_address(consumer)
        with self._lock:
            sub = self._sub(sub_id)
            if addr in sub.consumers:
                return
            if len(sub.consumers) >= MAX_CONSUMERS:
                raise TooManyConsumers(sub_id)
            sub.consumers.append(addr)
        self._emit(EVENT_CONSUMER_ADDED, sub_id=int(sub_id), consumer=addr)

    def remove_consumer(self, sub_id: int, consumer: str) -> None:
        addr = normalize_address(consumer)
        with self._lock:
            sub = self._sub(sub_id)
            if addr not in sub.consumers:
                raise InvalidConsumer(sub_id, addr)
            sub.consumers.remove(addr)
        self._emit(EVENT_CONSUMER_REMOVED, sub_id=int(sub_id), consumer=addr)

    def consumer_is_added(self, sub_id: int, consumer: str) -> bool:
        with self._lock:
            return normalize_address(consumer) in self._sub(sub_id).consumers

    # ----------------------------------------------------------------- requests

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
        sender = normalize_address(requester)
        with self._lock:
            sub = self._sub(sub_id)
            if sender not in sub.consumers:
                raise InvalidConsumer(sub_id, sender)
            if not (MIN_REQUEST_CONFIRMATIONS <= minimum_request_confirmations <= MAX_REQUEST_CONFIRMATIONS):
                raise InvalidRequestConfirmations(
                    minimum_request_confirmations, MIN_REQUEST_CONFIRMATIONS, MAX_REQUEST_CONFIRMATIONS
                )
            if callback_gas_limit > MAX_GAS_LIMIT:
                raise GasLimitTooBig(callback_gas_limit, MAX_GAS_LIMIT)
            if num_words > MAX_NUM_WORDS:
                raise NumWordsTooBig(num_words, MAX_NUM_WORDS)

            request_id = next(self._next_request)
            self._requests[request_id] = PendingRequest(
                request_id=request_id,
                sub_id=int(sub_id),
                key_hash=key_hash,
                minimum_request_confirmations=int(minimum_request_confirmations),
                callback_gas_limit=int(callback_gas_limit),
                num_words=int(num_words),
                sender=sender,
            )
            sub.req_count += 1

        self._emit(
            EVENT_RANDOM_WORDS_REQUESTED,
            key_hash=key_hash,
            request_id=request_id,
            pre_seed=request_id,
            sub_id=int(sub_id),
            minimum_request_confirmations=int(minimum_request_confirmations),
            callback_gas_limit=int(callback_gas_limit),
            num_words=int(num_words),
            sender=sender,
        )
        log.debug("random words requested", extra={"request_id": request_id, "sub_id": int(sub_id)})
        return request_id

    def pending_requests(self) -> List[int]:
        with self._lock:
            return sorted(self._requests)

    def get_request(self, request_id: int) -> PendingRequest:
        with self._lock:
            req = self._requests.get(int(request_id))
        if req is None:
            raise NonexistentRequest(request_id)
        return req

    def payment_for(self, request_id: int) -> int:
        return self.base_fee + self.get_request(request_id).callback_gas_limit * self.gas_price_link

    # -------------------------------------------------------------- fulfillment

    def fulfill_random_words(
        self,
        request_id: int,
        consumer: VRFConsumer,
        words: Optional[Sequence[int]] = None,
    ) -> FulfillmentResult:
        """
        Answer `request_id` by calling back `consumer`.

        Raises NonexistentRequest for unknown ids and
        InsufficientSubscriptionBalance when the subscription cannot pay; in
        both cases nothing changes and the request (if any) stays pending.
        """
        with self._lock:
            req = self._requests.get(int(request_id))
            if req is None:
                raise NonexistentRequest(request_id)
            if words is None:
                random_words = expand_words(req.request_id, req.num_words)
            else:
                random_words = tuple(int(w) for w in words)
                if len(random_words) != req.num_words:
                    raise OracleError(
                        "wrong number of words",
                        details={"have": len(random_words), "want": req.num_words},
                    )
            payment = self.base_fee + req.callback_gas_limit * self.gas_price_link
            sub = self._sub(req.sub_id)
            if sub.balance < payment:
                raise InsufficientSubscriptionBalance(req.sub_id, sub.balance, payment)
            # Claimed before the callback; the consumer runs without our lock held.
            del self._requests[req.request_id]
            sub.balance -= payment

        error: Optional[RaffleError] = None
        try:
            consumer.raw_fulfill_random_words(self._address, req.request_id, list(random_words))
        except RaffleError as exc:
            error = exc
            log.warning(
                "consumer rejected fulfillment",
                extra={"request_id": req.request_id, "consumer": consumer.address, "error": exc.code},
            )

        success = error is None
        self._emit(
            EVENT_RANDOM_WORDS_FULFILLED,
            request_id=req.request_id,
            output_seed=req.request_id,
            payment=payment,
            success=success,
        )
        return FulfillmentResult(
            request_id=req.request_id,
            random_words=random_words,
            payment=payment,
            success=success,
            error=error,
        )


__all__ = [
    "MockVRFCoordinator",
    "Subscription",
    "PendingRequest",
    "FulfillmentResult",
    "expand_words",
]
