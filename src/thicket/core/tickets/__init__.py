"""
Ticket records, their line codec, and the dependency graph.

This module provides the three record kinds persisted in tickets.jsonl
(Ticket, Comment, Dependency), the codec that maps log lines onto them, and
the DependencyGraph used for cycle checks and the ready query.
"""

from .codec import Record, RecordKind, classify, decode_line, encode_record
from .graph import DependencyGraph
from .models import (
    Comment,
    Dependency,
    DependencyType,
    Ticket,
    TicketStatus,
    TicketType,
    generate_ticket_id,
)

__all__ = [
    # Models
    "Ticket",
    "TicketStatus",
    "TicketType",
    "Comment",
    "Dependency",
    "DependencyType",
    "generate_ticket_id",
    # Codec
    "Record",
    "RecordKind",
    "classify",
    "decode_line",
    "encode_record",
    # Graph
    "DependencyGraph",
]
