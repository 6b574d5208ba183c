"""
raffle.state.events — the outbound event log.

Events are the only way observers learn that an entry was recorded, a winner
was requested or a winner was picked. Emitters publish (emitter, name, args);
the log stamps a monotonic `seq`, stores the record and notifies subscribers.

Backends:

- InMemoryEventLog: thread-safe, keeps everything in RAM (tests, devnets).
- JsonlEventLog: append-only JSON lines file; `seq` resumes after restart.
- NullEventLog: stores nothing but still notifies subscribers.

Subscriptions
-------------
`subscribe(name, callback)` registers a callback for one event name (or all
with name=None) and returns a token for `unsubscribe`. `once(name)` returns a
`concurrent.futures.Future` resolved with the next matching record, which is
how a listener awaits the asynchronous WinnerPicked after an upkeep.

Callbacks run after the record is stored and outside the log's lock. A
callback that raises is logged and does not stop delivery to the others; the
emitting operation has already committed by then.
"""

from __future__ import annotations

import itertools
import json
import logging
import os
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from ..types.events import EventRecord

log = logging.getLogger(__name__)

Listener = Callable[[EventRecord], None]
Predicate = Callable[[EventRecord], bool]


# =============================================================================
# Log interface
# =============================================================================


@runtime_checkable
class EventLog(Protocol):
    def emit(self, emitter: str, name: str, args: Mapping[str, Any], *, timestamp: int = 0) -> EventRecord:
        """Store one event and notify subscribers. Returns the stored record."""

    def get_logs(
        self,
        *,
        name: Optional[str] = None,
        emitter: Optional[str] = None,
        from_seq: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[EventRecord]:
        """Matching records in ascending seq order."""

    def subscribe(self, name: Optional[str], callback: Listener) -> int: ...

    def unsubscribe(self, token: int) -> bool: ...

    def once(self, name: str, predicate: Optional[Predicate] = None) -> "Future[EventRecord]": ...


def _matches(rec: EventRecord, name: Optional[str], emitter: Optional[str], from_seq: Optional[int]) -> bool:
    if name is not None and rec.name != name:
        return False
    if emitter is not None and rec.emitter != emitter:
        return False
    if from_seq is not None and rec.seq < from_seq:
        return False
    return True


# =============================================================================
# Subscription plumbing shared by all backends
# =============================================================================


class _Dispatcher:
    def __init__(self) -> None:
        self._sub_lock = threading.Lock()
        self._subs: Dict[int, Tuple[Optional[str], Listener]] = {}
        self._tokens = itertools.count(1)

    def subscribe(self, name: Optional[str], callback: Listener) -> int:
        token = next(self._tokens)
        with self._sub_lock:
            self._subs[token] = (name, callback)
        return token

    def unsubscribe(self, token: int) -> bool:
        with self._sub_lock:
            return self._subs.pop(token, None) is not None

    def once(self, name: str, predicate: Optional[Predicate] = None) -> "Future[EventRecord]":
        fut: "Future[EventRecord]" = Future()
        token_box: List[int] = []

        def _cb(rec: EventRecord) -> None:
            if fut.done() or (predicate is not None and not predicate(rec)):
                return
            self.unsubscribe(token_box[0])
            fut.set_result(rec)

        token_box.append(self.subscribe(name, _cb))
        return fut

    def _notify(self, rec: EventRecord) -> None:
        with self._sub_lock:
            targets = [cb for (n, cb) in self._subs.values() if n is None or n == rec.name]
        for cb in targets:
            try:
                cb(rec)
            except Exception:
                log.exception("event listener failed", extra={"event": rec.name, "seq": rec.seq})


# =============================================================================
# In-memory log
# =============================================================================


class InMemoryEventLog(_Dispatcher):
    """
    A simple, thread-safe in-memory log. Keeps all records in RAM.
    """

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.RLock()
        self._records: List[EventRecord] = []
        self._seq = itertools.count()

    def emit(self, emitter: str, name: str, args: Mapping[str, Any], *, timestamp: int = 0) -> EventRecord:
        with self._lock:
            rec = EventRecord(seq=next(self._seq), emitter=emitter, name=name, args=dict(args), timestamp=timestamp)
            self._records.append(rec)
        self._notify(rec)
        return rec

    def get_logs(
        self,
        *,
        name: Optional[str] = None,
        emitter: Optional[str] = None,
        from_seq: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[EventRecord]:
        with self._lock:
            out = [r for r in self._records if _matches(r, name, emitter, from_seq)]
        return out if limit is None else out[:limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        """Drop stored records. Numbering continues where it left off."""
        with self._lock:
            self._records.clear()


# =============================================================================
# JSONL log (durable)
# =============================================================================


class JsonlEventLog(_Dispatcher):
    """
    Append-only JSONL log. Each line is one EventRecord.to_dict().

    One instance should own the file; appends are serialized on its lock.
    """

    def __init__(self, path: str) -> None:
        super().__init__()
        self._path = path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self._lock = threading.RLock()
        self._fh = open(path, "a+", encoding="utf-8", buffering=1)
        self._next_seq = max((rec.seq for rec in self._scan()), default=-1) + 1

    def _scan(self) -> Iterable[EventRecord]:
        self._fh.flush()
        self._fh.seek(0)
        for lineno, line in enumerate(self._fh, start=1):
            if not line.strip():
                continue
            try:
                yield EventRecord.from_dict(json.loads(line))
            except (ValueError, KeyError) as e:
                log.warning("skipping malformed event line %d in %s: %r", lineno, self._path, e)

    def emit(self, emitter: str, name: str, args: Mapping[str, Any], *, timestamp: int = 0) -> EventRecord:
        with self._lock:
            rec = EventRecord(seq=self._next_seq, emitter=emitter, name=name, args=dict(args), timestamp=timestamp)
            self._fh.seek(0, os.SEEK_END)
            self._fh.write(json.dumps(rec.to_dict(), separators=(",", ":")) + "\n")
            self._next_seq += 1
        self._notify(rec)
        return rec

    def get_logs(
        self,
        *,
        name: Optional[str] = None,
        emitter: Optional[str] = None,
        from_seq: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[EventRecord]:
        out: List[EventRecord] = []
        with self._lock:
            for rec in self._scan():
                if _matches(rec, name, emitter, from_seq):
                    out.append(rec)
                    if limit is not None and len(out) >= limit:
                        break
        return out

    def flush(self) -> None:
        with self._lock:
            self._fh.flush()
            os.fsync(self._fh.fileno())

    def close(self) -> None:
        with self._lock:
            if not self._fh.closed:
                self._fh.flush()
                self._fh.close()


# =============================================================================
# Null log
# =============================================================================


class NullEventLog(_Dispatcher):
    def __init__(self) -> None:
        super().__init__()
        self._seq = itertools.count()

    def emit(self, emitter: str, name: str, args: Mapping[str, Any], *, timestamp: int = 0) -> EventRecord:
        rec = EventRecord(seq=next(self._seq), emitter=emitter, name=name, args=dict(args), timestamp=timestamp)
        self._notify(rec)
        return rec

    def get_logs(self, **_: Any) -> List[EventRecord]:
        return []


__all__ = ["EventLog", "Listener", "InMemoryEventLog", "JsonlEventLog", "NullEventLog"]
