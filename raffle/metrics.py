"""
Prometheus metrics for the raffle engine.

Instruments:
  • entries_total        — enter() attempts per outcome
  • upkeeps_total        — perform_upkeep() attempts per outcome
  • fulfillments_total   — fulfillment callbacks per outcome
  • keeper_ticks_total   — automation polls per outcome
  • payout_ether         — distribution of pot sizes paid to winners
  • fulfillment_latency_seconds — clock time from request to successful payout
  • pot_wei / players    — current round gauges

Label cardinality is kept low: only an `outcome` label with a small, finite
vocabulary. Unknown outcomes are folded into "error".

Usage
-----
    from raffle.metrics import METRICS

    METRICS.record_entry("accepted")
    METRICS.observe_round(pot_wei=..., players=...)

Tests and embedders that need isolation construct their own `Metrics` with a
fresh `CollectorRegistry`.
"""

from __future__ import annotations

from typing import Iterable

from prometheus_client import REGISTRY, Counter, Gauge, Histogram

from .constants import WEI_PER_ETHER

# --------- Vocabularies (kept small for bounded cardinality) ---------

_ENTRY_OUTCOMES = (
    "accepted",
    "insufficient_fee",
    "not_open",
    "insufficient_funds",
    "error",
)

_UPKEEP_OUTCOMES = (
    "performed",
    "not_needed",
    "request_failed",
    "error",
)

_FULFILL_OUTCOMES = (
    "fulfilled",
    "unknown_request",
    "empty_players",
    "missing_words",
    "unauthorized",
    "payout_failed",
    "error",
)

_KEEPER_OUTCOMES = (
    "idle",
    "performed",
    "raced",
    "error",
)

# --------- Default histogram buckets ---------

_PAYOUT_ETHER_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 50.0, 100.0)

_LATENCY_BUCKETS = (1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 900.0, 3600.0)


class Metrics:
    """
    Container for all raffle Prometheus instruments.

    Args:
        namespace: Prometheus metric namespace (prefix).
        subsystem: Prometheus metric subsystem.
        registry:  Prometheus registry to register the metrics with.
    """

    def __init__(
        self,
        *,
        namespace: str = "raffle",
        subsystem: str = "engine",
        registry=REGISTRY,
        payout_buckets: Iterable[float] = _PAYOUT_ETHER_BUCKETS,
        latency_buckets: Iterable[float] = _LATENCY_BUCKETS,
    ) -> None:
        common = dict(namespace=namespace, subsystem=subsystem, registry=registry)

        self.entries_total = Counter(
            "entries_total", "enter() attempts, labeled by outcome.", labelnames=("outcome",), **common
        )
        self.upkeeps_total = Counter(
            "upkeeps_total", "perform_upkeep() attempts, labeled by outcome.", labelnames=("outcome",), **common
        )
        self.fulfillments_total = Counter(
            "fulfillments_total",
            "Randomness fulfillment callbacks, labeled by outcome.",
            labelnames=("outcome",),
            **common,
        )
        self.keeper_ticks_total = Counter(
            "keeper_ticks_total", "Automation keeper polls, labeled by outcome.", labelnames=("outcome",), **common
        )

        self.payout_ether = Histogram(
            "payout_ether", "Pot paid to winners, in ether.", buckets=tuple(payout_buckets), **common
        )
        self.fulfillment_latency_seconds = Histogram(
            "fulfillment_latency_seconds",
            "Clock seconds between the randomness request and the payout.",
            buckets=tuple(latency_buckets),
            **common,
        )

        self.pot_wei = Gauge("pot_wei", "Pooled balance of the current round, in wei.", **common)
        self.players = Gauge("players", "Players entered in the current round.", **common)

    # ----- Recording helpers -------------------------------------------------

    @staticmethod
    def _fold(outcome: str, vocab: tuple) -> str:
        return outcome if outcome in vocab else "error"

    def record_entry(self, outcome: str) -> None:
        self.entries_total.labels(outcome=self._fold(outcome, _ENTRY_OUTCOMES)).inc()

    def record_upkeep(self, outcome: str) -> None:
        self.upkeeps_total.labels(outcome=self._fold(outcome, _UPKEEP_OUTCOMES)).inc()

    def record_fulfillment(self, outcome: str) -> None:
        self.fulfillments_total.labels(outcome=self._fold(outcome, _FULFILL_OUTCOMES)).inc()

    def record_keeper_tick(self, outcome: str) -> None:
        self.keeper_ticks_total.labels(outcome=self._fold(outcome, _KEEPER_OUTCOMES)).inc()

    def observe_payout(self, amount_wei: int, latency_sec: float) -> None:
        self.payout_ether.observe(amount_wei / WEI_PER_ETHER)
        self.fulfillment_latency_seconds.observe(max(0.0, float(latency_sec)))

    def observe_round(self, *, pot_wei: int, players: int) -> None:
        self.pot_wei.set(pot_wei)
        self.players.set(players)


# Singleton used by most components
METRICS = Metrics()

__all__ = [
    "Metrics",
    "METRICS",
    "_ENTRY_OUTCOMES",
    "_UPKEEP_OUTCOMES",
    "_FULFILL_OUTCOMES",
    "_KEEPER_OUTCOMES",
]
