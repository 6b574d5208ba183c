"""
Raffle configuration.

This file defines typed configuration objects and helpers for:
- Per-network defaults (coordinator address, gas lane, fee, interval, ...)
- The development-chain allow-list (networks that get a mock coordinator)
- The top-level `RaffleConfig` used by the deploy bootstrap and the service

It provides:
- Dataclass-based configs with validation (`ConfigError` on bad values)
- Loading from environment variables (prefix configurable)
- Loading from a JSON or YAML file

Amounts: `entrance_fee` is held in wei. Loaders accept either an integer (wei)
or a decimal string in ether ("0.01"), see `raffle.utils.units.parse_ether`.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

import yaml

from .constants import (
    DEFAULT_CALLBACK_GAS_LIMIT,
    DEFAULT_ENTRANCE_FEE,
    DEFAULT_GAS_LANE,
    DEFAULT_INTERVAL_SEC,
    DEFAULT_NUM_WORDS,
    DEFAULT_REQUEST_CONFIRMATIONS,
    DEVELOPMENT_CHAINS,
    GOERLI_CHAIN_ID,
    GOERLI_VRF_COORDINATOR,
    LOCAL_CHAIN_ID,
    MAX_GAS_LIMIT,
    MAX_NUM_WORDS,
    MAX_REQUEST_CONFIRMATIONS,
    MIN_REQUEST_CONFIRMATIONS,
)
from .errors import ConfigError
from .types.core import RaffleParams
from .utils.address import is_address, normalize_address
from .utils.units import format_ether, parse_ether

# -------------------------
# Networks
# -------------------------


@dataclass(frozen=True)
class NetworkConfig:
    """
    Static per-network defaults.

    vrf_coordinator is None on development chains: a mock is deployed there.
    subscription_id 0 means "not provisioned yet".
    """

    chain_id: int
    name: str
    gas_lane: str = DEFAULT_GAS_LANE
    entrance_fee: int = DEFAULT_ENTRANCE_FEE
    callback_gas_limit: int = DEFAULT_CALLBACK_GAS_LIMIT
    interval: int = DEFAULT_INTERVAL_SEC
    subscription_id: int = 0
    vrf_coordinator: Optional[str] = None


NETWORKS: Dict[int, NetworkConfig] = {
    GOERLI_CHAIN_ID: NetworkConfig(
        chain_id=GOERLI_CHAIN_ID,
        name="goerli",
        vrf_coordinator=GOERLI_VRF_COORDINATOR,
    ),
    LOCAL_CHAIN_ID: NetworkConfig(chain_id=LOCAL_CHAIN_ID, name="localhost"),
}


def get_network(chain_id: int) -> NetworkConfig:
    try:
        return NETWORKS[int(chain_id)]
    except KeyError:
        raise ConfigError(
            f"unknown chain id {chain_id}", details={"known": sorted(NETWORKS)}
        ) from None


def is_development_chain(name: str) -> bool:
    return name in DEVELOPMENT_CHAINS


# -------------------------
# Top-level config
# -------------------------


@dataclass
class RaffleConfig:
    """
    Network selection:
      - chain_id / network: which row of NETWORKS this config derives from

    Raffle parameters (immutable once the raffle is constructed):
      - entrance_fee (wei), interval (seconds)

    Randomness request parameters:
      - gas_lane (key hash), subscription_id, callback_gas_limit,
        request_confirmations, num_words, vrf_coordinator

    Operational:
      - event_log_path: JSONL event log file (None keeps events in memory)
      - keeper_poll_interval_s: automation poll period
      - log_level / log_json: see raffle.logging.configure
    """

    chain_id: int = LOCAL_CHAIN_ID
    network: str = "localhost"
    entrance_fee: int = DEFAULT_ENTRANCE_FEE
    interval: int = DEFAULT_INTERVAL_SEC
    gas_lane: str = DEFAULT_GAS_LANE
    subscription_id: int = 0
    callback_gas_limit: int = DEFAULT_CALLBACK_GAS_LIMIT
    request_confirmations: int = DEFAULT_REQUEST_CONFIRMATIONS
    num_words: int = DEFAULT_NUM_WORDS
    vrf_coordinator: Optional[str] = None

    event_log_path: Optional[str] = None
    keeper_poll_interval_s: float = 5.0
    log_level: str = "INFO"
    log_json: Optional[bool] = None

    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_development(self) -> bool:
        return is_development_chain(self.network)

    def validate(self) -> None:
        if self.chain_id <= 0:
            raise ConfigError("chain_id must be > 0")
        if not self.network:
            raise ConfigError("network name must be set")
        if self.entrance_fee < 0:
            raise ConfigError("entrance_fee must be >= 0")
        if self.interval < 0:
            raise ConfigError("interval must be >= 0")
        kh = self.gas_lane[2:] if self.gas_lane.startswith("0x") else self.gas_lane
        if len(kh) != 64 or any(c not in "0123456789abcdefABCDEF" for c in kh):
            raise ConfigError("gas_lane must be 32 bytes of hex", details={"gas_lane": self.gas_lane})
        if self.subscription_id < 0:
            raise ConfigError("subscription_id must be >= 0")
        if not (0 < self.callback_gas_limit <= MAX_GAS_LIMIT):
            raise ConfigError(f"callback_gas_limit must be in (0, {MAX_GAS_LIMIT}]")
        if not (MIN_REQUEST_CONFIRMATIONS <= self.request_confirmations <= MAX_REQUEST_CONFIRMATIONS):
            raise ConfigError(
                f"request_confirmations must be in [{MIN_REQUEST_CONFIRMATIONS}, {MAX_REQUEST_CONFIRMATIONS}]"
            )
        if not (0 < self.num_words <= MAX_NUM_WORDS):
            raise ConfigError(f"num_words must be in (0, {MAX_NUM_WORDS}]")
        if self.vrf_coordinator is not None and not is_address(self.vrf_coordinator):
            raise ConfigError("vrf_coordinator must be a 20-byte hex address")
        if not self.is_development and self.vrf_coordinator is None:
            raise ConfigError(f"vrf_coordinator is required on live network {self.network!r}")
        if self.keeper_poll_interval_s <= 0:
            raise ConfigError("keeper_poll_interval_s must be > 0")

    def to_params(self, subscription_id: Optional[int] = None) -> RaffleParams:
        """Construction parameters for a raffle; `subscription_id` overrides the configured one."""
        return RaffleParams(
            entrance_fee=self.entrance_fee,
            interval=self.interval,
            key_hash=self.gas_lane,
            subscription_id=self.subscription_id if subscription_id is None else int(subscription_id),
            callback_gas_limit=self.callback_gas_limit,
            request_confirmations=self.request_confirmations,
            num_words=self.num_words,
        )

    # -------------------------
    # Serialization helpers
    # -------------------------

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["entrance_fee"] = format_ether(self.entrance_fee)
        return data

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    # -------------------------
    # Loaders
    # -------------------------

    @staticmethod
    def from_network(chain_id: int, **overrides: Any) -> "RaffleConfig":
        net = get_network(chain_id)
        cfg = RaffleConfig(
            chain_id=net.chain_id,
            network=net.name,
            entrance_fee=net.entrance_fee,
            interval=net.interval,
            gas_lane=net.gas_lane,
            subscription_id=net.subscription_id,
            callback_gas_limit=net.callback_gas_limit,
            vrf_coordinator=net.vrf_coordinator,
        )
        if overrides:
            cfg = replace(cfg, **overrides)
        if cfg.vrf_coordinator is not None and is_address(cfg.vrf_coordinator):
            cfg.vrf_coordinator = normalize_address(cfg.vrf_coordinator)
        cfg.validate()
        return cfg

    @staticmethod
    def from_env(prefix: str = "RAFFLE_", environ: Optional[Mapping[str, str]] = None) -> "RaffleConfig":
        """
        Load configuration from environment variables. All variables are optional;
        network defaults are taken from RAFFLE_CHAIN_ID (default 31337).

        Supported keys (examples):
          - RAFFLE_CHAIN_ID=5
          - RAFFLE_NETWORK=goerli
          - RAFFLE_ENTRANCE_FEE=0.01           (ether)
          - RAFFLE_INTERVAL=30
          - RAFFLE_GAS_LANE=0x79d3...
          - RAFFLE_SUBSCRIPTION_ID=1234
          - RAFFLE_CALLBACK_GAS_LIMIT=500000
          - RAFFLE_REQUEST_CONFIRMATIONS=3
          - RAFFLE_NUM_WORDS=1
          - RAFFLE_VRF_COORDINATOR=0x2ca8...
          - RAFFLE_EVENT_LOG_PATH=./data/raffle/events.jsonl
          - RAFFLE_KEEPER_POLL_INTERVAL_S=5
          - RAFFLE_LOG_LEVEL=DEBUG
          - RAFFLE_LOG_JSON=true
        """
        env = os.environ if environ is None else environ

        def _get(name: str, cast: Any, default: Any) -> Any:
            key = prefix + name
            raw = env.get(key)
            if raw is None or raw == "":
                return default
            try:
                if cast is bool:
                    return raw.strip().lower() in {"1", "true", "yes", "on"}
                return cast(raw.strip())
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for {key}: {raw!r}") from e

        base = RaffleConfig.from_network(_get("CHAIN_ID", int, LOCAL_CHAIN_ID))
        cfg = replace(
            base,
            network=_get("NETWORK", str, base.network),
            entrance_fee=_get("ENTRANCE_FEE", parse_ether, base.entrance_fee),
            interval=_get("INTERVAL", int, base.interval),
            gas_lane=_get("GAS_LANE", str, base.gas_lane),
            subscription_id=_get("SUBSCRIPTION_ID", int, base.subscription_id),
            callback_gas_limit=_get("CALLBACK_GAS_LIMIT", int, base.callback_gas_limit),
            request_confirmations=_get("REQUEST_CONFIRMATIONS", int, base.request_confirmations),
            num_words=_get("NUM_WORDS", int, base.num_words),
            vrf_coordinator=_get("VRF_COORDINATOR", normalize_address, base.vrf_coordinator),
            event_log_path=_get("EVENT_LOG_PATH", str, base.event_log_path),
            keeper_poll_interval_s=_get("KEEPER_POLL_INTERVAL_S", float, base.keeper_poll_interval_s),
            log_level=_get("LOG_LEVEL", str, base.log_level),
            log_json=_get("LOG_JSON", bool, base.log_json),
        )
        cfg.validate()
        return cfg

    @staticmethod
    def from_file(path: str) -> "RaffleConfig":
        """
        Load configuration from a JSON or YAML file. Keys mirror the dataclass
        fields; unknown keys are kept under `extra`. Example:

            {
              "chain_id": 31337,
              "entrance_fee": "0.1",
              "interval": 30,
              "callback_gas_limit": 500000
            }

        YAML floats (`entrance_fee: 0.1`) are read through their decimal text.
        """
        data = _parse_json_or_yaml(_read_text(path), path)
        base = RaffleConfig.from_network(int(data.pop("chain_id", LOCAL_CHAIN_ID)))
        known = {f for f in base.__dataclass_fields__ if f not in ("chain_id", "extra")}
        kwargs: Dict[str, Any] = {}
        for k in list(data):
            if k in known:
                kwargs[k] = data.pop(k)
        try:
            if "entrance_fee" in kwargs:
                fee = kwargs["entrance_fee"]
                kwargs["entrance_fee"] = parse_ether(repr(fee) if isinstance(fee, float) else fee)
            if kwargs.get("vrf_coordinator") is not None:
                kwargs["vrf_coordinator"] = normalize_address(kwargs["vrf_coordinator"])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid value in {path}: {e}") from e
        cfg = replace(base, extra=dict(data), **kwargs)
        cfg.validate()
        return cfg


# -------------------------
# Utilities
# -------------------------


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _parse_json_or_yaml(text: str, path_hint: str) -> Dict[str, Any]:
    # JSON first, then YAML (a superset for the documents we accept)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"failed to parse {path_hint!r} as JSON or YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path_hint} must contain a mapping at top level")
    return data


__all__ = [
    "NetworkConfig",
    "NETWORKS",
    "get_network",
    "is_development_chain",
    "RaffleConfig",
]
