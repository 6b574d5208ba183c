"""
Raffle engine constants.

This module centralizes:
- Currency units (wei per ether / juels per LINK)
- Network identifiers and the development-chain allow-list
- Randomness request defaults (gas lane, confirmations, words, gas limit)
- Mock coordinator pricing and the coordinator's hard limits
- Event names emitted by the engine and the coordinator

Networks may override operational knobs via `raffle.config.RaffleConfig`;
code that needs stable defaults imports them from here.
"""

from __future__ import annotations

# -----------------------------
# Units
# -----------------------------
WEI_PER_ETHER: int = 10**18
JUELS_PER_LINK: int = 10**18
ETHER_DECIMALS: int = 18

ZERO_ADDRESS: str = "0x" + "00" * 20

# -----------------------------
# Networks
# -----------------------------
GOERLI_CHAIN_ID: int = 5
LOCAL_CHAIN_ID: int = 31337

DEVELOPMENT_CHAINS: tuple[str, ...] = ("localhost", "hardhat")

# 30 gwei key hash; the same lane is used on goerli and on the local mock.
DEFAULT_GAS_LANE: str = "0x79d3d8832d904592c0bf9818b621522c988bb8b0c05cdc3b15aea1b6e8db0c15"
GOERLI_VRF_COORDINATOR: str = "0x2ca8e0c643bde4c2e08ab1fa0da3401adad7734d"

# -----------------------------
# Raffle defaults
# -----------------------------
DEFAULT_ENTRANCE_FEE: int = WEI_PER_ETHER // 100  # 0.01 ether
DEFAULT_INTERVAL_SEC: int = 30
DEFAULT_CALLBACK_GAS_LIMIT: int = 500_000
DEFAULT_REQUEST_CONFIRMATIONS: int = 3
DEFAULT_NUM_WORDS: int = 1

# -----------------------------
# Mock coordinator pricing / limits
# -----------------------------
BASE_FEE: int = JUELS_PER_LINK // 4  # 0.25 LINK premium per request
GAS_PRICE_LINK: int = 10**5  # juels per gas unit
VRF_SUBSCRIPTION_FUND_AMOUNT: int = 2 * JUELS_PER_LINK

MIN_REQUEST_CONFIRMATIONS: int = 1
MAX_REQUEST_CONFIRMATIONS: int = 200
MAX_NUM_WORDS: int = 500
MAX_GAS_LIMIT: int = 2_500_000
MAX_CONSUMERS: int = 100

# -----------------------------
# Event names
# -----------------------------
EVENT_RAFFLE_ENTER: str = "RaffleEnter"
EVENT_REQUESTED_WINNER: str = "RequestedRaffleWinner"
EVENT_WINNER_PICKED: str = "WinnerPicked"

EVENT_SUBSCRIPTION_CREATED: str = "SubscriptionCreated"
EVENT_SUBSCRIPTION_FUNDED: str = "SubscriptionFunded"
EVENT_CONSUMER_ADDED: str = "ConsumerAdded"
EVENT_CONSUMER_REMOVED: str = "ConsumerRemoved"
EVENT_RANDOM_WORDS_REQUESTED: str = "RandomWordsRequested"
EVENT_RANDOM_WORDS_FULFILLED: str = "RandomWordsFulfilled"

__all__ = [
    # Units
    "WEI_PER_ETHER",
    "JUELS_PER_LINK",
    "ETHER_DECIMALS",
    "ZERO_ADDRESS",
    # Networks
    "GOERLI_CHAIN_ID",
    "LOCAL_CHAIN_ID",
    "DEVELOPMENT_CHAINS",
    "DEFAULT_GAS_LANE",
    "GOERLI_VRF_COORDINATOR",
    # Raffle defaults
    "DEFAULT_ENTRANCE_FEE",
    "DEFAULT_INTERVAL_SEC",
    "DEFAULT_CALLBACK_GAS_LIMIT",
    "DEFAULT_REQUEST_CONFIRMATIONS",
    "DEFAULT_NUM_WORDS",
    # Mock coordinator
    "BASE_FEE",
    "GAS_PRICE_LINK",
    "VRF_SUBSCRIPTION_FUND_AMOUNT",
    "MIN_REQUEST_CONFIRMATIONS",
    "MAX_REQUEST_CONFIRMATIONS",
    "MAX_NUM_WORDS",
    "MAX_GAS_LIMIT",
    "MAX_CONSUMERS",
    # Events
    "EVENT_RAFFLE_ENTER",
    "EVENT_REQUESTED_WINNER",
    "EVENT_WINNER_PICKED",
    "EVENT_SUBSCRIPTION_CREATED",
    "EVENT_SUBSCRIPTION_FUNDED",
    "EVENT_CONSUMER_ADDED",
    "EVENT_CONSUMER_REMOVED",
    "EVENT_RANDOM_WORDS_REQUESTED",
    "EVENT_RANDOM_WORDS_FULFILLED",
]
