from __future__ import annotations

import pytest

from raffle.config import RaffleConfig
from raffle.constants import (
    EVENT_RANDOM_WORDS_FULFILLED,
    EVENT_WINNER_PICKED,
    LOCAL_CHAIN_ID,
    ZERO_ADDRESS,
)
from raffle.deploy import deploy_raffle
from raffle.errors import (
    EmptyPlayerList,
    InsufficientSubscriptionBalance,
    MissingRandomWords,
    NonexistentRequest,
    OnlyCoordinatorCanFulfill,
    PayoutFailed,
    UnknownRequest,
)
from raffle.oracle.mock import MockVRFCoordinator, expand_words
from raffle.state.events import InMemoryEventLog
from raffle.state.ledger import Ledger
from raffle.tests.conftest import ENTRANCE_FEE, STARTING_BALANCE, player_addresses
from raffle.types.core import RaffleState
from raffle.utils.time import ManualClock


def _enter_all(raffle, players):
    for p in players:
        raffle.enter(p, ENTRANCE_FEE)


# ---- request identity -------------------------------------------------------


@pytest.mark.parametrize("request_id", [0, 1, 999])
def test_coordinator_rejects_unrequested_ids(raffle, coordinator, request_id):
    with pytest.raises(NonexistentRequest) as ei:
        coordinator.fulfill_random_words(request_id, raffle)
    assert ei.value.message == "nonexistent request"


def test_wrong_request_id_is_rejected_without_side_effects(ready_raffle, events):
    request_id = ready_raffle.perform_upkeep()
    before = ready_raffle.snapshot()
    logged = len(events)

    with pytest.raises(UnknownRequest) as ei:
        ready_raffle.fulfill_random_words(request_id + 1, [7])

    assert ei.value.pending == request_id
    assert ready_raffle.snapshot() == before
    assert len(events) == logged


def test_fulfill_without_pending_request_is_unknown(raffle, accounts):
    raffle.enter(accounts[0], ENTRANCE_FEE)
    with pytest.raises(UnknownRequest) as ei:
        raffle.fulfill_random_words(1, [7])
    assert ei.value.pending is None
    assert raffle.state is RaffleState.OPEN


def test_only_the_coordinator_may_call_back(ready_raffle, accounts):
    request_id = ready_raffle.perform_upkeep()
    with pytest.raises(OnlyCoordinatorCanFulfill) as ei:
        ready_raffle.raw_fulfill_random_words(accounts[3], request_id, [1])
    assert ei.value.have == accounts[3]
    assert ready_raffle.state is RaffleState.CALCULATING
    assert ready_raffle.pending_request_id == request_id


def test_empty_word_list_is_rejected(ready_raffle, coordinator):
    request_id = ready_raffle.perform_upkeep()
    with pytest.raises(MissingRandomWords):
        ready_raffle.raw_fulfill_random_words(coordinator.address, request_id, [])
    assert ready_raffle.state is RaffleState.CALCULATING


def test_empty_player_list_is_an_integrity_failure(ready_raffle):
    # Unreachable through the public API; forced to check the guard.
    request_id = ready_raffle.perform_upkeep()
    ready_raffle._players = []
    with pytest.raises(EmptyPlayerList):
        ready_raffle.fulfill_random_words(request_id, [5])
    assert ready_raffle.state is RaffleState.CALCULATING
    assert ready_raffle.pending_request_id == request_id


# ---- winner selection -------------------------------------------------------


def test_single_player_always_wins(ready_raffle, coordinator, accounts, ledger):
    request_id = ready_raffle.perform_upkeep()
    result = coordinator.fulfill_random_words(request_id, ready_raffle, words=[42])

    assert result.success
    assert ready_raffle.recent_winner == accounts[0]
    assert ready_raffle.state is RaffleState.OPEN
    assert ledger.balance_of(accounts[0]) == STARTING_BALANCE


@pytest.mark.parametrize("word", [0, 1, 2, 3, 4, 7, 2**256 - 1])
def test_winner_index_is_first_word_mod_players(raffle, coordinator, accounts, clock, word):
    players = accounts[:4]
    _enter_all(raffle, players)
    clock.advance(raffle.interval + 1)
    request_id = raffle.perform_upkeep()

    coordinator.fulfill_random_words(request_id, raffle, words=[word])
    assert raffle.recent_winner == players[word % 4]


def test_only_first_word_is_used(make_deployment):
    dep = make_deployment(num_words=3)
    raffle, coord, clock = dep.raffle, dep.coordinator, dep.raffle.clock
    players = player_addresses(3)
    _enter_all(raffle, players)
    clock.advance(raffle.interval + 1)
    request_id = raffle.perform_upkeep()

    coord.fulfill_random_words(request_id, raffle, words=[4, 0, 0])
    assert raffle.recent_winner == players[1]


def test_default_mock_words_are_deterministic(ready_raffle, coordinator, accounts, clock):
    for p in accounts[1:]:
        ready_raffle.enter(p, ENTRANCE_FEE)
    request_id = ready_raffle.perform_upkeep()

    result = coordinator.fulfill_random_words(request_id, ready_raffle)
    assert result.random_words == expand_words(request_id, 1)
    assert ready_raffle.recent_winner == accounts[result.random_words[0] % len(accounts)]


# ---- payout and reset -------------------------------------------------------


def test_winner_receives_whole_pot_and_round_resets(raffle, coordinator, accounts, ledger, clock, events):
    players = accounts[:4]
    _enter_all(raffle, players)
    raffle.enter(accounts[4], ENTRANCE_FEE * 2)  # overpayment joins the pot
    pot = ENTRANCE_FEE * 6
    clock.advance(raffle.interval + 1)
    request_id = raffle.perform_upkeep()
    clock.advance(12)

    coordinator.fulfill_random_words(request_id, raffle, words=[4])

    winner = accounts[4]
    assert raffle.recent_winner == winner
    assert ledger.balance_of(winner) == STARTING_BALANCE - ENTRANCE_FEE * 2 + pot
    assert raffle.balance == 0
    assert raffle.num_players == 0
    assert raffle.state is RaffleState.OPEN
    assert raffle.pending_request_id is None
    assert raffle.last_timestamp == clock.now()
    assert raffle.round_no == 2

    picked = events.get_logs(name=EVENT_WINNER_PICKED)
    assert [e["winner"] for e in picked] == [winner]
    assert picked[0].timestamp == clock.now()

    payout = raffle.snapshot().last_payout
    assert payout is not None
    assert (payout.winner, payout.amount, payout.round_ref, payout.request_id) == (winner, pot, 1, request_id)


def test_fulfillment_event_reports_payment(ready_raffle, coordinator, events):
    request_id = ready_raffle.perform_upkeep()
    expected = coordinator.payment_for(request_id)
    result = coordinator.fulfill_random_words(request_id, ready_raffle)

    assert result.payment == expected == coordinator.base_fee + 500_000 * coordinator.gas_price_link
    fulfilled = events.get_logs(name=EVENT_RANDOM_WORDS_FULFILLED)
    assert len(fulfilled) == 1
    assert fulfilled[0]["request_id"] == request_id
    assert fulfilled[0]["success"] is True
    assert fulfilled[0]["payment"] == expected


def test_replayed_fulfillment_is_rejected(ready_raffle, coordinator):
    request_id = ready_raffle.perform_upkeep()
    coordinator.fulfill_random_words(request_id, ready_raffle, words=[1])
    winner = ready_raffle.recent_winner

    with pytest.raises(NonexistentRequest):
        coordinator.fulfill_random_words(request_id, ready_raffle, words=[2])
    with pytest.raises(UnknownRequest):
        ready_raffle.raw_fulfill_random_words(coordinator.address, request_id, [2])
    assert ready_raffle.recent_winner == winner


# ---- failure paths ----------------------------------------------------------


def test_failed_payout_rolls_back_and_leaves_round_calculating(ready_raffle, coordinator, accounts, ledger, events):
    request_id = ready_raffle.perform_upkeep()
    ledger.refuse_payments(accounts[0])
    pot = ready_raffle.balance

    result = coordinator.fulfill_random_words(request_id, ready_raffle, words=[0])

    assert not result.success
    assert isinstance(result.error, PayoutFailed)
    assert result.error.winner == accounts[0]
    assert result.error.amount == pot
    assert ready_raffle.state is RaffleState.CALCULATING
    assert ready_raffle.pending_request_id == request_id
    assert ready_raffle.players == (accounts[0],)
    assert ready_raffle.balance == pot
    assert ready_raffle.recent_winner == ZERO_ADDRESS
    assert events.get_logs(name=EVENT_WINNER_PICKED) == []
    assert events.get_logs(name=EVENT_RANDOM_WORDS_FULFILLED)[0]["success"] is False
    # The coordinator consumed the request; nothing will answer it again.
    assert coordinator.pending_requests() == []
    assert not ready_raffle.check_upkeep().upkeep_needed


def test_direct_fulfill_raises_payout_failed(ready_raffle, accounts, ledger):
    request_id = ready_raffle.perform_upkeep()
    ledger.refuse_payments(accounts[0], reason="no receive function")
    with pytest.raises(PayoutFailed) as ei:
        ready_raffle.fulfill_random_words(request_id, [0])
    assert "no receive function" in ei.value.reason
    assert ledger.depth == 0


def test_unfunded_subscription_cannot_fulfill():
    clock = ManualClock()
    events = InMemoryEventLog()
    ledger = Ledger({a: STARTING_BALANCE for a in player_addresses()})
    expensive = MockVRFCoordinator(base_fee=3 * 10**18, events=events)
    dep = deploy_raffle(
        RaffleConfig.from_network(LOCAL_CHAIN_ID, entrance_fee=ENTRANCE_FEE),
        coordinator=expensive,
        ledger=ledger,
        events=events,
        clock=clock,
    )
    raffle = dep.raffle
    raffle.enter(player_addresses(1)[0], ENTRANCE_FEE)
    clock.advance(raffle.interval)
    request_id = raffle.perform_upkeep()

    with pytest.raises(InsufficientSubscriptionBalance):
        expensive.fulfill_random_words(request_id, raffle)
    assert expensive.pending_requests() == [request_id]
    assert raffle.state is RaffleState.CALCULATING

    expensive.fund_subscription(dep.subscription_id, 2 * 10**18)
    assert expensive.fulfill_random_words(request_id, raffle).success
    assert raffle.state is RaffleState.OPEN
