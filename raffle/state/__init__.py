"""
Mutable state owned outside the engine: the balance ledger and the event log.
"""

from __future__ import annotations

from .events import EventLog, InMemoryEventLog, JsonlEventLog, NullEventLog
from .ledger import Ledger

__all__ = ["EventLog", "InMemoryEventLog", "JsonlEventLog", "NullEventLog", "Ledger"]
