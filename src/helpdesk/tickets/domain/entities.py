"""
Ticket Domain Entities
======================

Pure Python domain entities for ticket tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from helpdesk.config import Priority, TicketStatus, TERMINAL_STATUSES


# Fields a caller may change through an update; everything else is system-managed
UPDATABLE_FIELDS = ("title", "description", "status", "priority", "assigned_to")


@dataclass
class Ticket:
    """
    Ticket entity representing a support ticket.

    `version` starts at 1 and grows by one per accepted update; writes are
    accepted only against the version the caller last read.
    """

    id: int
    title: str
    description: str
    status: TicketStatus
    priority: Priority
    created_by: int
    version: int
    sla_due_date: datetime
    sla_breached: bool

    created_at: datetime
    updated_at: datetime

    assigned_to: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        """Resolved and closed tickets no longer run an SLA clock."""
        return self.status in TERMINAL_STATUSES

    def changed_fields(self, changes: dict[str, Any]) -> dict[str, tuple[Any, Any]]:
        """Map each field whose value differs to its (old, new) pair."""
        return {
            name: (getattr(self, name), value)
            for name, value in changes.items()
            if getattr(self, name) != value
        }


@dataclass
class Comment:
    """
    Comment on a ticket. Immutable once created.

    Replies reference a parent comment on the same ticket; threads are
    rendered client-side from the flat, oldest-first listing.
    """

    id: int
    ticket_id: int
    author_id: int
    content: str
    created_at: datetime
    parent_comment_id: Optional[int] = None


@dataclass
class HistoryEntry:
    """One append-only audit record of a ticket mutation."""

    id: int
    ticket_id: int
    actor_id: int
    action: str
    new_value: Any
    created_at: datetime
    old_value: Any = None
