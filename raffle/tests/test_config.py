from __future__ import annotations

import json
from decimal import Decimal

import pytest

from raffle.config import NETWORKS, RaffleConfig, get_network, is_development_chain
from raffle.constants import (
    DEFAULT_CALLBACK_GAS_LIMIT,
    DEFAULT_ENTRANCE_FEE,
    DEFAULT_GAS_LANE,
    DEFAULT_INTERVAL_SEC,
    GOERLI_CHAIN_ID,
    GOERLI_VRF_COORDINATOR,
    LOCAL_CHAIN_ID,
)
from raffle.errors import ConfigError
from raffle.utils.units import format_ether, parse_ether


# ---- networks ---------------------------------------------------------------


def test_known_networks():
    assert set(NETWORKS) == {GOERLI_CHAIN_ID, LOCAL_CHAIN_ID}
    goerli = get_network(5)
    assert goerli.name == "goerli"
    assert goerli.vrf_coordinator == GOERLI_VRF_COORDINATOR
    assert get_network(31337).vrf_coordinator is None


def test_unknown_network():
    with pytest.raises(ConfigError) as ei:
        get_network(1)
    assert ei.value.details["known"] == [5, 31337]


@pytest.mark.parametrize("name,dev", [("localhost", True), ("hardhat", True), ("goerli", False), ("mainnet", False)])
def test_development_chains(name, dev):
    assert is_development_chain(name) is dev


def test_local_defaults():
    cfg = RaffleConfig.from_network(LOCAL_CHAIN_ID)
    assert cfg.is_development
    assert cfg.entrance_fee == DEFAULT_ENTRANCE_FEE == parse_ether("0.01")
    assert cfg.interval == DEFAULT_INTERVAL_SEC == 30
    assert cfg.gas_lane == DEFAULT_GAS_LANE
    assert cfg.callback_gas_limit == DEFAULT_CALLBACK_GAS_LIMIT == 500_000
    assert cfg.request_confirmations == 3
    assert cfg.num_words == 1
    assert cfg.vrf_coordinator is None


def test_goerli_requires_a_coordinator():
    cfg = RaffleConfig.from_network(GOERLI_CHAIN_ID)
    assert not cfg.is_development
    with pytest.raises(ConfigError):
        RaffleConfig.from_network(GOERLI_CHAIN_ID, vrf_coordinator=None)


@pytest.mark.parametrize(
    "override",
    [
        dict(entrance_fee=-1),
        dict(interval=-1),
        dict(gas_lane="0x1234"),
        dict(callback_gas_limit=0),
        dict(callback_gas_limit=2_500_001),
        dict(request_confirmations=0),
        dict(request_confirmations=201),
        dict(num_words=0),
        dict(num_words=501),
        dict(vrf_coordinator="0xnothex"),
        dict(keeper_poll_interval_s=0),
    ],
)
def test_validation(override):
    with pytest.raises(ConfigError):
        RaffleConfig.from_network(LOCAL_CHAIN_ID, **override)


def test_to_params_and_dict():
    cfg = RaffleConfig.from_network(LOCAL_CHAIN_ID, entrance_fee=parse_ether("0.1"))
    params = cfg.to_params(subscription_id=7)
    assert params.subscription_id == 7
    assert params.entrance_fee == 10**17
    assert params.key_hash == DEFAULT_GAS_LANE
    d = json.loads(cfg.to_json())
    assert d["entrance_fee"] == "0.1"
    assert d["chain_id"] == 31337


# ---- loaders ----------------------------------------------------------------


def test_from_env_reads_prefixed_keys():
    env = {
        "RAFFLE_CHAIN_ID": "31337",
        "RAFFLE_ENTRANCE_FEE": "0.25",
        "RAFFLE_INTERVAL": "60",
        "RAFFLE_NUM_WORDS": "2",
        "RAFFLE_LOG_JSON": "yes",
        "RAFFLE_LOG_LEVEL": "DEBUG",
        "RAFFLE_KEEPER_POLL_INTERVAL_S": "0.5",
        "OTHER_INTERVAL": "999",
    }
    cfg = RaffleConfig.from_env(environ=env)
    assert cfg.entrance_fee == parse_ether("0.25")
    assert cfg.interval == 60
    assert cfg.num_words == 2
    assert cfg.log_json is True
    assert cfg.log_level == "DEBUG"
    assert cfg.keeper_poll_interval_s == 0.5


def test_from_env_empty_uses_network_defaults():
    assert RaffleConfig.from_env(environ={}) == RaffleConfig.from_network(LOCAL_CHAIN_ID)


def test_from_env_bad_value():
    with pytest.raises(ConfigError) as ei:
        RaffleConfig.from_env(environ={"RAFFLE_INTERVAL": "soon"})
    assert "RAFFLE_INTERVAL" in str(ei.value)


def test_from_env_live_network():
    cfg = RaffleConfig.from_env(environ={"RAFFLE_CHAIN_ID": "5", "RAFFLE_SUBSCRIPTION_ID": "1234"})
    assert cfg.network == "goerli"
    assert cfg.subscription_id == 1234
    assert cfg.vrf_coordinator == GOERLI_VRF_COORDINATOR


def test_from_file(tmp_path):
    path = tmp_path / "raffle.json"
    path.write_text(
        json.dumps({"chain_id": 31337, "entrance_fee": "0.1", "interval": 45, "operator": "ops@example"}),
        encoding="utf-8",
    )
    cfg = RaffleConfig.from_file(str(path))
    assert cfg.entrance_fee == 10**17
    assert cfg.interval == 45
    assert cfg.extra == {"operator": "ops@example"}


def test_from_file_accepts_wei_integers(tmp_path):
    path = tmp_path / "raffle.json"
    path.write_text(json.dumps({"entrance_fee": 12345}), encoding="utf-8")
    assert RaffleConfig.from_file(str(path)).entrance_fee == 12345


def test_from_file_reads_yaml(tmp_path):
    path = tmp_path / "raffle.yaml"
    path.write_text(
        "chain_id: 31337\nentrance_fee: 0.1\ninterval: 60\nnum_words: 2\nnote: staging\n",
        encoding="utf-8",
    )
    cfg = RaffleConfig.from_file(str(path))
    assert cfg.entrance_fee == 10**17
    assert (cfg.interval, cfg.num_words) == (60, 2)
    assert cfg.extra == {"note": "staging"}


def test_from_file_empty_document_uses_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert RaffleConfig.from_file(str(path)) == RaffleConfig.from_network(LOCAL_CHAIN_ID)


@pytest.mark.parametrize("body", ["{not json", "[1, 2]", json.dumps({"entrance_fee": "abc"})])
def test_from_file_rejects_bad_documents(tmp_path, body):
    path = tmp_path / "raffle.json"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError):
        RaffleConfig.from_file(str(path))


# ---- units ------------------------------------------------------------------


@pytest.mark.parametrize(
    "value,wei",
    [
        ("0.1", 10**17),
        ("0.01", 10**16),
        ("2", 2 * 10**18),
        (Decimal("0.25"), 25 * 10**16),
        ("0.000000000000000001", 1),
        (42, 42),
    ],
)
def test_parse_ether(value, wei):
    assert parse_ether(value) == wei


@pytest.mark.parametrize("bad", ["-1", "abc", "0.0000000000000000001", "NaN", -5])
def test_parse_ether_rejects(bad):
    with pytest.raises(ValueError):
        parse_ether(bad)


def test_parse_ether_rejects_bool():
    with pytest.raises(TypeError):
        parse_ether(True)


@pytest.mark.parametrize("wei,text", [(10**17, "0.1"), (2 * 10**18, "2"), (1, "0.000000000000000001"), (0, "0")])
def test_format_ether(wei, text):
    assert format_ether(wei) == text
