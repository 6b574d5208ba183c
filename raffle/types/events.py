"""
Event records emitted by the engine and the randomness coordinator.

An event is (emitter, name, args); the log assigns `seq` and `timestamp` when
it is published. `args` holds JSON-safe scalars only (ints, strs, bools) so
records can be persisted as JSON lines and served over RPC unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class EventRecord:
    seq: int
    emitter: str
    name: str
    args: Mapping[str, Any] = field(default_factory=dict)
    timestamp: int = 0

    def __getitem__(self, key: str) -> Any:
        return self.args[key]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "emitter": self.emitter,
            "name": self.name,
            "args": dict(self.args),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "EventRecord":
        return cls(
            seq=int(d["seq"]),
            emitter=str(d["emitter"]),
            name=str(d["name"]),
            args=dict(d.get("args") or {}),
            timestamp=int(d.get("timestamp", 0)),
        )


__all__ = ["EventRecord"]
