"""
Access Policy
=============

Every role/ownership decision about tickets lives here. Stateless predicates,
no I/O; controllers and services call these instead of comparing roles inline.
"""

from typing import Optional

from helpdesk.config import TicketStatus
from helpdesk.tickets.domain.entities import Ticket
from helpdesk.users.domain import Actor


class AccessPolicy:
    """Role and ownership rules for reading, modifying and assigning tickets."""

    @staticmethod
    def can_access(actor: Actor, ticket: Ticket) -> bool:
        """Staff see every ticket; plain users only their own."""
        if actor.is_staff:
            return True
        return ticket.created_by == actor.id

    @staticmethod
    def can_modify(actor: Actor, ticket: Ticket) -> bool:
        """
        Staff may always edit. A plain user may edit their own ticket only
        while it is still open; once triage starts the editing window closes.
        """
        if actor.is_staff:
            return True
        return ticket.created_by == actor.id and ticket.status == TicketStatus.OPEN

    @staticmethod
    def can_assign(actor: Actor) -> bool:
        """Only staff route tickets to people."""
        return actor.is_staff

    @staticmethod
    def visible_creator(actor: Actor) -> Optional[int]:
        """
        Creator id that listings must be scoped to, or None for staff.

        Applying the scope inside the query keeps paging over visible rows.
        """
        return None if actor.is_staff else actor.id
