# -*- coding: utf-8 -*-
"""
raffle.tests.conftest
=====================

Fixtures for the raffle engine tests.

- `clock`       : ManualClock; tests advance it the way a devnet bumps time.
- `accounts`    : five deterministic player addresses, each funded with 100 ether.
- `ledger`      : Ledger holding those balances.
- `coordinator` : MockVRFCoordinator sharing the event log with the raffle.
- `deployment`  : full localhost bootstrap (subscription created, funded,
                  raffle added as consumer) with an entrance fee of 0.1 ether.
- `raffle`      : the deployed engine.
- `make_deployment` : factory for tests that need a fresh world per example
                  (hypothesis) or non-default parameters.

Usage:
    def test_round(raffle, accounts, clock):
        raffle.enter(accounts[0], raffle.entrance_fee)
        clock.advance(raffle.interval + 1)
        request_id = raffle.perform_upkeep()
"""
from __future__ import annotations

import os
from typing import Any, Callable, List

import pytest
from prometheus_client import CollectorRegistry

from raffle.config import RaffleConfig
from raffle.constants import LOCAL_CHAIN_ID
from raffle.deploy import Deployment, deploy_raffle
from raffle.metrics import Metrics
from raffle.oracle.mock import MockVRFCoordinator
from raffle.state.events import InMemoryEventLog
from raffle.state.ledger import Ledger
from raffle.utils.address import derive_address
from raffle.utils.time import ManualClock
from raffle.utils.units import parse_ether

os.environ.setdefault("TZ", "UTC")

ENTRANCE_FEE = parse_ether("0.1")
STARTING_BALANCE = parse_ether("100")
GENESIS_TIME = 1_700_000_000


def player_addresses(n: int = 5) -> List[str]:
    return [derive_address(f"raffle-tests/player/{i}") for i in range(n)]


def build_deployment(clock: ManualClock | None = None, **overrides: Any) -> Deployment:
    """A fresh localhost world: clock, funded ledger, mock coordinator, raffle."""
    clock = clock or ManualClock(GENESIS_TIME)
    events = InMemoryEventLog()
    ledger = Ledger({a: STARTING_BALANCE for a in player_addresses()})
    coordinator = MockVRFCoordinator(events=events)
    overrides.setdefault("entrance_fee", ENTRANCE_FEE)
    cfg = RaffleConfig.from_network(LOCAL_CHAIN_ID, **overrides)
    return deploy_raffle(
        cfg,
        coordinator=coordinator,
        ledger=ledger,
        events=events,
        clock=clock,
        metrics=Metrics(registry=CollectorRegistry()),
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(GENESIS_TIME)


@pytest.fixture
def accounts() -> List[str]:
    return player_addresses()


@pytest.fixture
def deployment(clock: ManualClock) -> Deployment:
    return build_deployment(clock)


@pytest.fixture
def make_deployment() -> Callable[..., Deployment]:
    return build_deployment


@pytest.fixture
def raffle(deployment: Deployment):
    return deployment.raffle


@pytest.fixture
def ledger(deployment: Deployment) -> Ledger:
    return deployment.ledger


@pytest.fixture
def coordinator(deployment: Deployment) -> MockVRFCoordinator:
    assert isinstance(deployment.coordinator, MockVRFCoordinator)
    return deployment.coordinator


@pytest.fixture
def events(deployment: Deployment) -> InMemoryEventLog:
    assert isinstance(deployment.events, InMemoryEventLog)
    return deployment.events


@pytest.fixture
def ready_raffle(raffle, accounts, clock):
    """One player entered and the interval elapsed: upkeep is due."""
    raffle.enter(accounts[0], ENTRANCE_FEE)
    clock.advance(raffle.interval + 1)
    return raffle
