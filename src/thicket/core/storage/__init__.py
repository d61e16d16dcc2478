"""
Ticket storage: the JSONL log, its SQLite cache, and the Store that keeps
them in sync.

Callers use Store; LogStore and TicketCache are exposed for tooling that
needs to inspect one side directly (for example, a rebuild check).
"""

from .cache import TicketCache
from .connection import init_db
from .log import LogSnapshot, LogStore
from .store import CHECKPOINT_KEY, Store

__all__ = [
    "Store",
    "CHECKPOINT_KEY",
    "LogStore",
    "LogSnapshot",
    "TicketCache",
    "init_db",
]
