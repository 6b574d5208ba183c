from __future__ import annotations

import pytest

from raffle.constants import ZERO_ADDRESS
from raffle.errors import InsufficientFunds, LedgerError, NegativeAmount, TransferRejected
from raffle.state.ledger import Ledger
from raffle.utils.address import derive_address

A = derive_address("ledger/a")
B = derive_address("ledger/b")
C = derive_address("ledger/c")


def test_initial_balances_and_supply():
    led = Ledger({A: 10, B: 5})
    assert led.balance_of(A) == 10
    assert led.balance_of(A.upper().replace("0X", "0x")) == 10
    assert led.balance_of(C) == 0
    assert led.total_supply() == 15


def test_rejects_negative_amounts():
    with pytest.raises(NegativeAmount):
        Ledger({A: -1})
    led = Ledger({A: 10})
    with pytest.raises(NegativeAmount):
        led.transfer(A, B, -1)
    with pytest.raises(ValueError):
        led.credit(A, -5)


def test_mint_credit_debit():
    led = Ledger()
    assert led.mint(A, 7) == 7
    assert led.credit(A, 3) == 10
    assert led.debit(A, 4) == 6
    with pytest.raises(InsufficientFunds) as ei:
        led.debit(A, 100)
    assert (ei.value.balance, ei.value.required) == (6, 100)


def test_transfer_moves_value():
    led = Ledger({A: 10})
    led.transfer(A, B, 4)
    assert (led.balance_of(A), led.balance_of(B)) == (6, 4)
    assert led.total_supply() == 10


def test_transfer_insufficient_funds_changes_nothing():
    led = Ledger({A: 3})
    with pytest.raises(InsufficientFunds):
        led.transfer(A, B, 4)
    assert (led.balance_of(A), led.balance_of(B)) == (3, 0)


@pytest.mark.parametrize(
    "hook",
    [
        lambda sender, amount: False,
        lambda sender, amount: 1 / 0,
    ],
    ids=["refuses", "raises"],
)
def test_receive_hook_can_refuse(hook):
    led = Ledger({A: 10})
    led.set_receive_hook(B, hook)
    with pytest.raises(TransferRejected) as ei:
        led.transfer(A, B, 1)
    assert ei.value.recipient == B
    assert led.balance_of(A) == 10
    assert led.balance_of(B) == 0


def test_receive_hook_accepting_and_removed():
    seen = []
    led = Ledger({A: 10})
    led.set_receive_hook(B, lambda sender, amount: seen.append((sender, amount)))
    led.transfer(A, B, 2)
    assert seen == [(A, 2)]
    led.set_receive_hook(B, None)
    led.transfer(A, B, 2)
    assert seen == [(A, 2)]
    assert led.balance_of(B) == 4


def test_receive_hook_guards_credit_and_mint():
    seen = []
    led = Ledger()
    led.set_receive_hook(B, lambda sender, amount: seen.append((sender, amount)))
    assert led.mint(B, 3) == 3
    assert seen == [(ZERO_ADDRESS, 3)]

    led.refuse_payments(B)
    with pytest.raises(TransferRejected) as ei:
        led.credit(B, 5)
    assert ei.value.sender == ZERO_ADDRESS
    assert led.balance_of(B) == 3


def test_refuse_payments_reason_is_reported():
    led = Ledger({A: 10})
    led.refuse_payments(B, reason="contract has no receive()")
    with pytest.raises(TransferRejected) as ei:
        led.transfer(A, B, 1)
    assert ei.value.reason == "contract has no receive()"


# ---- journal ----------------------------------------------------------------


def test_checkpoint_commit_and_revert():
    led = Ledger({A: 10})
    cp = led.checkpoint()
    led.transfer(A, B, 3)
    assert led.balance_of(B) == 3
    led.revert(cp)
    assert led.balance_of(B) == 0
    assert led.depth == 0

    cp = led.checkpoint()
    led.transfer(A, B, 3)
    led.commit(cp)
    assert (led.balance_of(A), led.balance_of(B)) == (7, 3)


def test_nested_checkpoints_merge_down():
    led = Ledger({A: 10})
    outer = led.checkpoint()
    led.transfer(A, B, 1)
    inner = led.checkpoint()
    led.transfer(A, C, 2)
    assert led.depth == 2
    led.commit(inner)
    led.revert(outer)
    assert (led.balance_of(A), led.balance_of(B), led.balance_of(C)) == (10, 0, 0)


def test_checkpoints_must_close_in_order():
    led = Ledger()
    outer = led.checkpoint()
    led.checkpoint()
    with pytest.raises(LedgerError):
        led.commit(outer)
    with pytest.raises(LedgerError):
        Ledger().revert(1)


def test_atomic_reverts_on_error_and_commits_on_success():
    led = Ledger({A: 10})
    with pytest.raises(RuntimeError):
        with led.atomic():
            led.transfer(A, B, 5)
            raise RuntimeError("boom")
    assert led.balance_of(A) == 10
    assert led.depth == 0

    with led.atomic():
        led.transfer(A, B, 5)
    assert led.balance_of(B) == 5
