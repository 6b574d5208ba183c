"""
raffle.keeper — automation loop that closes rounds when they are due.

The keeper is the "external scheduler" side of the upkeep protocol:

    check = raffle.check_upkeep()          # free, read-only
    if check.upkeep_needed:
        raffle.perform_upkeep()            # re-validated by the engine

`tick()` runs one poll synchronously; `run_forever()` repeats it in the
default executor on a jittered interval until cancelled, a stop event is
set or `max_ticks` polls have run.

Failure policy
--------------
- UpkeepNotNeeded between check and perform (someone else closed the round,
  or it changed underneath us) counts as "raced" and the keeper re-polls.
- Other RaffleErrors (coordinator refused the request, subscription
  unfunded, ...) are logged and retried with a bounded backoff in
  run_forever; tick() lets them propagate.
- Anything else is a bug: logged and re-raised.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Optional

from .engine import Raffle
from .errors import RaffleError, UpkeepNotNeeded
from .metrics import METRICS, Metrics
from .types.core import RequestId

log = logging.getLogger(__name__)


class Backoff:
    """
    Decorrelated jitter backoff (bounded).
    """

    def __init__(self, *, min_sec: float = 1.0, max_sec: float = 30.0, rng: Optional[random.Random] = None):
        self.min = float(min_sec)
        self.max = float(max_sec)
        self.cur = self.min
        self._rng = rng or random.Random()

    def reset(self) -> None:
        self.cur = self.min

    def next(self) -> float:
        self.cur = min(self.max, max(self.min, self._rng.random() * (self.cur * 3.0)))
        return self.cur


class UpkeepKeeper:
    def __init__(
        self,
        raffle: Raffle,
        *,
        poll_interval_sec: float = 5.0,
        jitter_frac: float = 0.15,
        metrics: Optional[Metrics] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        if poll_interval_sec <= 0:
            raise ValueError("poll_interval_sec must be > 0")
        if not 0.0 <= jitter_frac < 1.0:
            raise ValueError("jitter_frac must be in [0, 1)")
        self.raffle = raffle
        self.poll_interval_sec = float(poll_interval_sec)
        self.jitter_frac = float(jitter_frac)
        self.metrics = metrics or METRICS
        self._rng = rng or random.Random()
        self.ticks = 0
        self.performed = 0

    def tick(self) -> Optional[RequestId]:
        """One poll. Returns the new request id when upkeep was performed."""
        self.ticks += 1
        check = self.raffle.check_upkeep()
        if not check.upkeep_needed:
            self.metrics.record_keeper_tick("idle")
            log.debug("upkeep not due", extra={"raffle": self.raffle.address, "failing": ",".join(check.failing)})
            return None
        try:
            request_id = self.raffle.perform_upkeep(check.perform_data)
        except UpkeepNotNeeded as exc:
            self.metrics.record_keeper_tick("raced")
            log.debug("upkeep raced", extra={"raffle": self.raffle.address, **exc.details})
            return None
        except RaffleError:
            self.metrics.record_keeper_tick("error")
            raise
        self.performed += 1
        self.metrics.record_keeper_tick("performed")
        return request_id

    def _sleep_for(self) -> float:
        jitter = self.poll_interval_sec * self.jitter_frac
        return max(0.0, self.poll_interval_sec + self._rng.uniform(-jitter, jitter))

    async def run_forever(
        self,
        *,
        stop_event: Optional[asyncio.Event] = None,
        max_ticks: Optional[int] = None,
    ) -> int:
        """
        Poll until cancelled, `stop_event` is set or `max_ticks` polls ran.
        Returns the number of upkeeps performed by this call.
        """
        backoff = Backoff(min_sec=self.poll_interval_sec, max_sec=max(self.poll_interval_sec * 8, 30.0), rng=self._rng)
        performed = 0
        polls = 0
        loop = asyncio.get_running_loop()
        log.info("keeper started", extra={"raffle": self.raffle.address, "poll_interval_sec": self.poll_interval_sec})
        while stop_event is None or not stop_event.is_set():
            if max_ticks is not None and polls >= max_ticks:
                break
            polls += 1
            delay = self._sleep_for()
            try:
                # tick() takes the engine lock; keep it off the event loop.
                if await loop.run_in_executor(None, self.tick) is not None:
                    performed += 1
                backoff.reset()
            except RaffleError as exc:
                delay = backoff.next()
                log.warning(
                    "upkeep failed; backing off",
                    extra={"raffle": self.raffle.address, "error": exc.code, "retry_in": round(delay, 3)},
                )
            except Exception:
                log.exception("keeper crashed", extra={"raffle": self.raffle.address})
                raise
            if stop_event is None:
                await asyncio.sleep(delay)
            else:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        log.info("keeper stopped", extra={"raffle": self.raffle.address, "performed": performed})
        return performed


__all__ = ["Backoff", "UpkeepKeeper"]
