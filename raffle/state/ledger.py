"""
raffle.state.ledger — balances, transfers and a checkpoint journal.

The ledger is the book of integer wei balances the raffle moves money through:
entries move fees from a player into the engine's account, payouts move the
whole pot to the winner.

Key properties
--------------
- Nested checkpoints: `checkpoint()` pushes an overlay, writes go to the top
  overlay, reads consult overlays top → base. `commit(cp)` merges the top
  overlay down, `revert(cp)` drops it. Checkpoints must be closed in LIFO
  order.
- Receive hooks: an address may register a hook that is consulted before it
  is credited by `transfer`, `credit` or `mint`. Returning False or raising
  refuses the payment (`TransferRejected`). This models recipients that
  cannot or will not accept funds, and lets the engine refuse money that
  does not arrive via `enter`.
- `mint` credits without a sender (faucet for tests and bootstrap); hooks
  see the zero address as the sender.
- Thread-safe via an internal RLock.

Typical use
-----------
    cp = ledger.checkpoint()
    try:
        ledger.transfer(player, raffle_addr, fee)
    except Exception:
        ledger.revert(cp)
        raise
    else:
        ledger.commit(cp)
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Mapping, Optional

from ..constants import ZERO_ADDRESS
from ..errors import InsufficientFunds, LedgerError, NegativeAmount, RaffleError, TransferRejected
from ..utils.address import normalize_address

log = logging.getLogger(__name__)

# hook(sender, amount) -> False to refuse; raising also refuses.
ReceiveHook = Callable[[str, int], Optional[bool]]


def _ensure_non_negative(amount: int) -> int:
    amount = int(amount)
    if amount < 0:
        raise NegativeAmount(amount)
    return amount


class Ledger:
    def __init__(self, balances: Optional[Mapping[str, int]] = None) -> None:
        self._lock = threading.RLock()
        self._base: Dict[str, int] = {}
        self._overlays: List[Dict[str, int]] = []
        self._hooks: Dict[str, ReceiveHook] = {}
        for addr, bal in (balances or {}).items():
            self._base[normalize_address(addr)] = _ensure_non_negative(bal)

    # ------------------------------------------------------------------ reads

    def balance_of(self, address: str) -> int:
        addr = normalize_address(address)
        with self._lock:
            for layer in reversed(self._overlays):
                if addr in layer:
                    return layer[addr]
            return self._base.get(addr, 0)

    def total_supply(self) -> int:
        with self._lock:
            merged = dict(self._base)
            for layer in self._overlays:
                merged.update(layer)
            return sum(merged.values())

    @property
    def depth(self) -> int:
        with self._lock:
            return len(self._overlays)

    # ----------------------------------------------------------------- writes

    def _set(self, addr: str, value: int) -> None:
        if self._overlays:
            self._overlays[-1][addr] = value
        else:
            self._base[addr] = value

    def mint(self, address: str, amount: int) -> int:
        """Credit `amount` out of thin air. Returns the new balance."""
        return self.credit(address, amount)

    def credit(self, address: str, amount: int) -> int:
        """
        Add `amount` without a sender. The recipient's receive hook still
        applies, with the zero address as sender.
        """
        amount = _ensure_non_negative(amount)
        addr = normalize_address(address)
        with self._lock:
            hook = self._hooks.get(addr)
            if hook is not None:
                self._run_hook(hook, ZERO_ADDRESS, addr, amount)
            new = self.balance_of(addr) + amount
            self._set(addr, new)
            return new

    def debit(self, address: str, amount: int) -> int:
        amount = _ensure_non_negative(amount)
        addr = normalize_address(address)
        with self._lock:
            bal = self.balance_of(addr)
            if bal < amount:
                raise InsufficientFunds(addr, bal, amount)
            self._set(addr, bal - amount)
            return bal - amount

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """
        Move `amount` from sender to recipient.

        Raises InsufficientFunds if the sender is short and TransferRejected if
        the recipient's receive hook refuses. Nothing is written in either case.
        """
        amount = _ensure_non_negative(amount)
        src = normalize_address(sender)
        dst = normalize_address(recipient)
        with self._lock:
            bal = self.balance_of(src)
            if bal < amount:
                raise InsufficientFunds(src, bal, amount)
            hook = self._hooks.get(dst)
            if hook is not None:
                self._run_hook(hook, src, dst, amount)
            self._set(src, bal - amount)
            self._set(dst, self.balance_of(dst) + amount)
        log.debug("transfer", extra={"sender": src, "recipient": dst, "amount": amount})

    @staticmethod
    def _run_hook(hook: ReceiveHook, src: str, dst: str, amount: int) -> None:
        try:
            accepted = hook(src, amount)
        except TransferRejected:
            raise
        except RaffleError as exc:
            raise TransferRejected(src, dst, amount, reason=exc.code) from exc
        except Exception as exc:
            raise TransferRejected(src, dst, amount, reason=f"{type(exc).__name__}: {exc}") from exc
        if accepted is False:
            raise TransferRejected(src, dst, amount)

    # ------------------------------------------------------------------ hooks

    def set_receive_hook(self, address: str, hook: Optional[ReceiveHook]) -> None:
        addr = normalize_address(address)
        with self._lock:
            if hook is None:
                self._hooks.pop(addr, None)
            else:
                self._hooks[addr] = hook

    def refuse_payments(self, address: str, reason: str = "recipient cannot receive funds") -> None:
        addr = normalize_address(address)

        def _refuse(sender: str, amount: int) -> bool:
            raise TransferRejected(sender, addr, amount, reason=reason)

        self.set_receive_hook(addr, _refuse)

    # ---------------------------------------------------------------- journal

    def checkpoint(self) -> int:
        """Open a checkpoint; returns its id for commit/revert."""
        with self._lock:
            self._overlays.append({})
            return len(self._overlays)

    def _check_top(self, cp: int) -> None:
        if cp != len(self._overlays) or cp == 0:
            raise LedgerError(
                "checkpoint closed out of order",
                details={"checkpoint": cp, "depth": len(self._overlays)},
            )

    def commit(self, cp: int) -> None:
        with self._lock:
            self._check_top(cp)
            top = self._overlays.pop()
            if self._overlays:
                self._overlays[-1].update(top)
            else:
                self._base.update(top)

    def revert(self, cp: int) -> None:
        with self._lock:
            self._check_top(cp)
            self._overlays.pop()

    @contextmanager
    def atomic(self) -> Iterator["Ledger"]:
        """Commit on success, revert on any exception (re-raised)."""
        with self._lock:
            cp = self.checkpoint()
            try:
                yield self
            except BaseException:
                self.revert(cp)
                raise
            self.commit(cp)


__all__ = ["Ledger", "ReceiveHook"]
