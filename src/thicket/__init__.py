"""
Thicket - a lightweight ticket tracker

Tickets live in a version-controlled JSONL log with a local SQLite cache
for queries.
"""

__version__ = "0.3.0"

# Re-export core models for convenience
from thicket.core.storage.store import Store
from thicket.core.tickets.models import Comment, Dependency, DependencyType, Ticket, TicketStatus

__all__ = [
    "Store",
    "Ticket",
    "TicketStatus",
    "Comment",
    "Dependency",
    "DependencyType",
    "__version__",
]
