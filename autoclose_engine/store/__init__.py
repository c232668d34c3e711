"""Ticket and rule stores for the auto-close engine.

  - InMemoryTicketStore / InMemoryRuleStore: reference implementations
  - SQLiteHelpdeskStore: both protocols on one SQLite file
"""

from .base import RuleStore, TicketStore
from .memory import InMemoryRuleStore, InMemoryTicketStore
from .sqlite_store import SQLiteHelpdeskStore

__all__ = [
    "TicketStore",
    "RuleStore",
    "InMemoryTicketStore",
    "InMemoryRuleStore",
    "SQLiteHelpdeskStore",
]
