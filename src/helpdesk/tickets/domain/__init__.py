"""
Tickets Domain Layer
====================

Contains:
- Entities: Ticket, Comment, HistoryEntry
- Policies: AccessPolicy

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk.tickets.domain.entities import (
    Comment,
    HistoryEntry,
    Ticket,
    UPDATABLE_FIELDS,
)
from helpdesk.tickets.domain.policies import AccessPolicy

__all__ = [
    "Comment",
    "HistoryEntry",
    "Ticket",
    "UPDATABLE_FIELDS",
    "AccessPolicy",
]
