"""
raffle.deploy — bootstrap a raffle and its randomness subscription.

Two steps, run once per network:

1) deploy_mocks   : on development chains ("localhost", "hardhat") start a
                    MockVRFCoordinator priced at BASE_FEE / GAS_PRICE_LINK.
                    Live networks use the configured coordinator instead.
2) deploy_raffle  : on development chains create a subscription, fund it
                    with VRF_SUBSCRIPTION_FUND_AMOUNT and register the new
                    raffle as a consumer. On live networks the subscription
                    is provisioned out of band and only referenced by id.

Usage
-----
    cfg = RaffleConfig.from_network(31337)
    dep = deploy_raffle(cfg)
    dep.raffle.enter(player, dep.raffle.entrance_fee)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import RaffleConfig
from .constants import BASE_FEE, GAS_PRICE_LINK, VRF_SUBSCRIPTION_FUND_AMOUNT, ZERO_ADDRESS
from .engine import Raffle
from .errors import ConfigError
from .metrics import Metrics
from .oracle.base import RandomnessCoordinator
from .oracle.mock import MockVRFCoordinator
from .state.events import EventLog, InMemoryEventLog, JsonlEventLog
from .state.ledger import Ledger
from .utils.address import normalize_address
from .utils.time import Clock

log = logging.getLogger(__name__)


@dataclass
class Deployment:
    raffle: Raffle
    coordinator: RandomnessCoordinator
    subscription_id: int
    config: RaffleConfig
    ledger: Ledger
    events: EventLog

    @property
    def is_mock(self) -> bool:
        return isinstance(self.coordinator, MockVRFCoordinator)

    def close(self) -> None:
        """Release the event log's file handle, if it holds one."""
        close = getattr(self.events, "close", None)
        if callable(close):
            close()


def _open_event_log(cfg: RaffleConfig) -> EventLog:
    if cfg.event_log_path:
        return JsonlEventLog(cfg.event_log_path)
    return InMemoryEventLog()


def deploy_mocks(cfg: RaffleConfig, *, events: Optional[EventLog] = None) -> Optional[MockVRFCoordinator]:
    """A fresh mock coordinator on development chains, None elsewhere."""
    if not cfg.is_development:
        return None
    log.info("Local network detected! Deploying mocks...", extra={"network": cfg.network})
    mock = MockVRFCoordinator(BASE_FEE, GAS_PRICE_LINK, events=events)
    log.info("Mocks deployed", extra={"coordinator": mock.address})
    return mock


def deploy_raffle(
    cfg: RaffleConfig,
    *,
    coordinator: Optional[RandomnessCoordinator] = None,
    ledger: Optional[Ledger] = None,
    events: Optional[EventLog] = None,
    clock: Optional[Clock] = None,
    metrics: Optional[Metrics] = None,
    deployer: str = ZERO_ADDRESS,
    fund_amount: int = VRF_SUBSCRIPTION_FUND_AMOUNT,
) -> Deployment:
    """
    Construct a raffle for `cfg`'s network and wire it to a coordinator.

    Raises ConfigError when a live network is missing its coordinator or
    subscription, or when the supplied coordinator is not the configured one.
    """
    cfg.validate()
    events = events if events is not None else _open_event_log(cfg)
    ledger = ledger if ledger is not None else Ledger()

    if cfg.is_development:
        if coordinator is None:
            coordinator = deploy_mocks(cfg, events=events)
        if not isinstance(coordinator, MockVRFCoordinator):
            raise ConfigError("development chains expect a MockVRFCoordinator")
        sub_id = coordinator.create_subscription(owner=deployer)
        coordinator.fund_subscription(sub_id, fund_amount)
    else:
        if coordinator is None:
            raise ConfigError(f"no coordinator supplied for live network {cfg.network!r}")
        if normalize_address(coordinator.address) != normalize_address(cfg.vrf_coordinator or ZERO_ADDRESS):
            raise ConfigError(
                "coordinator address does not match configuration",
                details={"have": coordinator.address, "want": cfg.vrf_coordinator},
            )
        if cfg.subscription_id <= 0:
            raise ConfigError(f"subscription_id must be provisioned for live network {cfg.network!r}")
        sub_id = cfg.subscription_id

    raffle = Raffle(
        cfg.to_params(subscription_id=sub_id),
        coordinator,
        ledger=ledger,
        clock=clock,
        events=events,
        metrics=metrics,
    )

    if isinstance(coordinator, MockVRFCoordinator):
        coordinator.add_consumer(sub_id, raffle.address)

    log.info(
        "raffle deployed",
        extra={
            "network": cfg.network,
            "raffle": raffle.address,
            "coordinator": coordinator.address,
            "sub_id": sub_id,
        },
    )
    return Deployment(
        raffle=raffle,
        coordinator=coordinator,
        subscription_id=sub_id,
        config=cfg,
        ledger=ledger,
        events=events,
    )


__all__ = ["Deployment", "deploy_mocks", "deploy_raffle"]
