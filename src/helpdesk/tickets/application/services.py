"""
Ticket Application Services
===========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

A mutation flows: access policy -> conditional store write -> history
append -> SLA re-evaluation. Idempotency for creation is handled one level
up, by the controller, through the IdempotencyGuard.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional

from helpdesk.config import HistoryAction, Priority
from helpdesk.core import (
    ConflictException,
    ForbiddenException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk.shared.infrastructure.clock import Clock
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.domain import SLAPolicy
from helpdesk.tickets.domain import (
    AccessPolicy,
    Comment,
    HistoryEntry,
    Ticket,
    UPDATABLE_FIELDS,
)
from helpdesk.users.application.services import IUserRepository
from helpdesk.users.domain import Actor

logger = get_logger(__name__)

# assigned_to may be cleared with None; the others are required columns
_NON_NULLABLE_FIELDS = ("title", "description", "status", "priority")


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def create(
        self,
        title: str,
        description: str,
        priority: Priority,
        created_by: int,
        assigned_to: Optional[int],
        sla_due_date: datetime,
        now: datetime
    ) -> Ticket:
        """Insert a ticket at version 1, status open."""

    @abstractmethod
    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        """Get ticket by id."""

    @abstractmethod
    async def exists(self, ticket_id: int) -> bool:
        """Check if a ticket exists."""

    @abstractmethod
    async def list(self, filters: dict, limit: int = 50, offset: int = 0) -> List[Ticket]:
        """List tickets newest first, exact-match filters."""

    @abstractmethod
    async def search(
        self,
        text: str,
        limit: int = 50,
        offset: int = 0,
        created_by: Optional[int] = None
    ) -> List[Ticket]:
        """Case-insensitive substring search over tickets and their comments."""

    @abstractmethod
    async def update_if_version(
        self,
        ticket_id: int,
        expected_version: int,
        values: dict,
        now: datetime
    ) -> bool:
        """Apply values and bump version only if the stored version matches."""

    @abstractmethod
    async def find_sla_breached(self, now: datetime, created_by: Optional[int] = None) -> List[Ticket]:
        """Tickets past their due date that are not resolved or closed."""

    @abstractmethod
    async def mark_sla_breached(self, ticket_id: int, now: datetime) -> bool:
        """Set the breach flag if still unset and the ticket is past due."""


class ICommentRepository(ABC):
    """Interface for comment data access."""

    @abstractmethod
    async def create(
        self,
        ticket_id: int,
        author_id: int,
        content: str,
        parent_comment_id: Optional[int],
        now: datetime
    ) -> Comment:
        """Insert a comment."""

    @abstractmethod
    async def get_by_id(self, comment_id: int) -> Optional[Comment]:
        """Get comment by id."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: int) -> List[Comment]:
        """Comments on a ticket, oldest first."""


class IHistoryRepository(ABC):
    """Interface for the append-only audit trail."""

    @abstractmethod
    async def append(
        self,
        ticket_id: int,
        actor_id: int,
        action: str,
        new_value: Any,
        now: datetime,
        old_value: Any = None
    ) -> HistoryEntry:
        """Append one history entry."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: int) -> List[HistoryEntry]:
        """History of a ticket, oldest first."""


# ========== Application Services ==========

class TicketService:
    """
    Service for ticket creation, optimistic updates and comment threads.

    Coordinates between domain logic and data access. All writes go through
    the session held by the repositories, so one call is one unit of work.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        comment_repository: ICommentRepository,
        history_repository: IHistoryRepository,
        user_repository: IUserRepository,
        sla_policy: SLAPolicy,
        sla_evaluator,  # SLAEvaluationService
        clock: Clock
    ):
        self._tickets = ticket_repository
        self._comments = comment_repository
        self._history = history_repository
        self._users = user_repository
        self._sla_policy = sla_policy
        self._sla = sla_evaluator
        self._clock = clock

    # ----- reads -----

    async def get_ticket(self, actor: Actor, ticket_id: int) -> Ticket:
        """
        Fetch a ticket the actor may read.

        Raises:
            ResourceNotFoundException: no such ticket
            ForbiddenException: actor may not read it
        """
        ticket = await self._tickets.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", str(ticket_id))
        if not AccessPolicy.can_access(actor, ticket):
            raise ForbiddenException("You do not have permission to view this ticket")
        return ticket

    async def list_tickets(
        self,
        actor: Actor,
        filters: Optional[dict] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Ticket]:
        """List tickets visible to the actor, newest first."""
        filters = dict(filters or {})
        scope = AccessPolicy.visible_creator(actor)
        if scope is not None:
            if filters.get("created_by") not in (None, scope):
                return []
            filters["created_by"] = scope

        tickets = await self._tickets.list(filters, limit=limit, offset=offset)
        return [t for t in tickets if AccessPolicy.can_access(actor, t)]

    async def search_tickets(
        self,
        actor: Actor,
        text: str,
        limit: int = 50,
        offset: int = 0
    ) -> List[Ticket]:
        """Search titles, descriptions and comments of visible tickets."""
        tickets = await self._tickets.search(
            text, limit=limit, offset=offset,
            created_by=AccessPolicy.visible_creator(actor)
        )
        return [t for t in tickets if AccessPolicy.can_access(actor, t)]

    async def list_sla_breached(self, actor: Actor) -> List[Ticket]:
        """Visible tickets whose deadline has passed while still unresolved."""
        tickets = await self._tickets.find_sla_breached(
            self._clock.now(), created_by=AccessPolicy.visible_creator(actor)
        )
        return [t for t in tickets if AccessPolicy.can_access(actor, t)]

    async def list_comments(self, actor: Actor, ticket_id: int) -> List[Comment]:
        await self.get_ticket(actor, ticket_id)
        return await self._comments.list_for_ticket(ticket_id)

    async def get_history(self, actor: Actor, ticket_id: int) -> List[HistoryEntry]:
        await self.get_ticket(actor, ticket_id)
        return await self._history.list_for_ticket(ticket_id)

    # ----- writes -----

    async def create_ticket(
        self,
        actor: Actor,
        title: str,
        description: str,
        priority: Priority = Priority.MEDIUM,
        assigned_to: Optional[int] = None
    ) -> Ticket:
        """
        Create a ticket at version 1 with its SLA deadline.

        The ticket row and its "created" history entry are flushed in the
        same session, so neither can exist without the other.

        Raises:
            ForbiddenException: a plain user tried to assign the ticket
            ValidationException: assignee does not exist
        """
        if assigned_to is not None:
            await self._check_assignee(actor, assigned_to)

        now = self._clock.now()
        ticket = await self._tickets.create(
            title=title,
            description=description,
            priority=priority,
            created_by=actor.id,
            assigned_to=assigned_to,
            sla_due_date=self._sla_policy.compute_due_date(priority, now),
            now=now,
        )

        await self._history.append(
            ticket.id, actor.id, HistoryAction.CREATED,
            {"title": title, "description": description, "priority": priority},
            now,
        )

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "priority": priority,
                "sla_due_date": ticket.sla_due_date.isoformat(),
                "created_by": actor.id
            }
        )
        return ticket

    async def update_ticket(
        self,
        actor: Actor,
        ticket_id: int,
        expected_version: int,
        changes: dict
    ) -> Ticket:
        """
        Apply field changes if the ticket is still at `expected_version`.

        Only title, description, status, priority and assigned_to are
        honoured; other keys are ignored. A priority change restarts the SLA
        clock from now. One history entry is written per changed field.

        Raises:
            ValidationException: no updatable field supplied, or unknown assignee
            ResourceNotFoundException: no such ticket
            ForbiddenException: actor may not modify (or assign) it
            ConflictException: stored version differs from expected_version
        """
        recognised = {
            name: changes[name]
            for name in UPDATABLE_FIELDS
            if name in changes and not (changes[name] is None and name in _NON_NULLABLE_FIELDS)
        }
        if not recognised:
            raise ValidationException(
                "No valid fields to update",
                {"allowed_fields": list(UPDATABLE_FIELDS)}
            )

        ticket = await self._tickets.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", str(ticket_id))
        if not AccessPolicy.can_modify(actor, ticket):
            raise ForbiddenException("You do not have permission to modify this ticket")
        if "assigned_to" in recognised:
            await self._check_assignee(actor, recognised["assigned_to"])

        if ticket.version != expected_version:
            raise self._conflict(ticket_id, expected_version, ticket.version)

        diffs = ticket.changed_fields(recognised)
        now = self._clock.now()
        values = dict(recognised)
        if "priority" in diffs:
            values["sla_due_date"] = self._sla_policy.compute_due_date(values["priority"], now)

        applied = await self._tickets.update_if_version(ticket_id, expected_version, values, now)
        if not applied:
            # Lost the race between our read and the conditional write
            if not await self._tickets.exists(ticket_id):
                raise ResourceNotFoundException("Ticket", str(ticket_id))
            current = await self._tickets.get_by_id(ticket_id)
            raise self._conflict(ticket_id, expected_version, current.version if current else None)

        for name, (old, new) in diffs.items():
            await self._history.append(
                ticket_id, actor.id, f"{HistoryAction.UPDATED_PREFIX}{name}", new, now,
                old_value=old,
            )

        updated = await self._tickets.get_by_id(ticket_id)
        updated = await self._sla.evaluate(updated)

        logger.info(
            "Ticket updated",
            extra={
                "ticket_id": ticket_id,
                "version": updated.version,
                "changed_fields": sorted(diffs),
                "updated_by": actor.id
            }
        )
        return updated

    async def add_comment(
        self,
        actor: Actor,
        ticket_id: int,
        content: str,
        parent_comment_id: Optional[int] = None
    ) -> Comment:
        """
        Append a comment (optionally a reply) to a ticket the actor can read.

        Raises:
            ResourceNotFoundException: no such ticket
            ForbiddenException: actor may not read the ticket
            ValidationException: parent comment missing or on another ticket
        """
        await self.get_ticket(actor, ticket_id)

        if parent_comment_id is not None:
            parent = await self._comments.get_by_id(parent_comment_id)
            if parent is None or parent.ticket_id != ticket_id:
                raise ValidationException(
                    "Parent comment not found on this ticket",
                    {"parent_comment_id": parent_comment_id}
                )

        now = self._clock.now()
        comment = await self._comments.create(ticket_id, actor.id, content, parent_comment_id, now)
        await self._history.append(
            ticket_id, actor.id, HistoryAction.COMMENTED,
            {"comment_id": comment.id, "content": content, "parent_comment_id": parent_comment_id},
            now,
        )

        logger.info(
            "Comment added",
            extra={"ticket_id": ticket_id, "comment_id": comment.id, "author_id": actor.id}
        )
        return comment

    # ----- helpers -----

    async def _check_assignee(self, actor: Actor, assignee_id: Optional[int]) -> None:
        if not AccessPolicy.can_assign(actor):
            raise ForbiddenException("You do not have permission to assign tickets")
        if assignee_id is not None and await self._users.get_by_id(assignee_id) is None:
            raise ValidationException("Assigned user not found", {"assigned_to": assignee_id})

    @staticmethod
    def _conflict(ticket_id: int, expected: int, current: Optional[int]) -> ConflictException:
        logger.info(
            "Ticket version conflict",
            extra={"ticket_id": ticket_id, "expected_version": expected, "current_version": current}
        )
        return ConflictException(
            "Ticket was modified by another user. Please refresh and try again.",
            {"ticket_id": ticket_id, "expected_version": expected, "current_version": current}
        )
