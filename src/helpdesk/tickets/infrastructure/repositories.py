"""
Tickets Infrastructure Repositories
===================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database. The version check on update is expressed as one
conditional UPDATE statement, never as a read followed by a write.
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import TicketStatus, TERMINAL_STATUSES
from helpdesk.infrastructure.database import translate_store_errors
from helpdesk.shared.infrastructure.clock import as_utc
from helpdesk.tickets.application.services import (
    ICommentRepository,
    IHistoryRepository,
    ITicketRepository,
)
from helpdesk.tickets.domain import Comment, HistoryEntry, Ticket
from helpdesk.tickets.infrastructure.models import CommentModel, HistoryModel, TicketModel

_FILTER_COLUMNS = {
    "status": TicketModel.status,
    "priority": TicketModel.priority,
    "assigned_to": TicketModel.assigned_to,
    "created_by": TicketModel.created_by,
    "sla_breached": TicketModel.sla_breached,
}


def _ticket_to_entity(model: TicketModel) -> Ticket:
    return Ticket(
        id=model.id,
        title=model.title,
        description=model.description,
        status=model.status,
        priority=model.priority,
        assigned_to=model.assigned_to,
        created_by=model.created_by,
        version=model.version,
        sla_due_date=as_utc(model.sla_due_date),
        sla_breached=bool(model.sla_breached),
        created_at=as_utc(model.created_at),
        updated_at=as_utc(model.updated_at),
    )


def _comment_to_entity(model: CommentModel) -> Comment:
    return Comment(
        id=model.id,
        ticket_id=model.ticket_id,
        author_id=model.author_id,
        content=model.content,
        parent_comment_id=model.parent_comment_id,
        created_at=as_utc(model.created_at),
    )


def _history_to_entity(model: HistoryModel) -> HistoryEntry:
    return HistoryEntry(
        id=model.id,
        ticket_id=model.ticket_id,
        actor_id=model.actor_id,
        action=model.action,
        old_value=model.old_value,
        new_value=model.new_value,
        created_at=as_utc(model.created_at),
    )


def _newest_first(stmt):
    return stmt.order_by(TicketModel.created_at.desc(), TicketModel.id.desc())


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Handles persistence of Ticket entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(
        self,
        title: str,
        description: str,
        priority: str,
        created_by: int,
        assigned_to: Optional[int],
        sla_due_date: datetime,
        now: datetime
    ) -> Ticket:
        model = TicketModel(
            title=title,
            description=description,
            status=TicketStatus.OPEN,
            priority=priority,
            created_by=created_by,
            assigned_to=assigned_to,
            version=1,
            sla_due_date=sla_due_date,
            sla_breached=False,
            created_at=now,
            updated_at=now,
        )

        self._session.add(model)
        with translate_store_errors():
            await self._session.flush()

        return _ticket_to_entity(model)

    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        # populate_existing: conditional UPDATEs bypass the identity map
        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        with translate_store_errors():
            result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _ticket_to_entity(model) if model else None

    async def exists(self, ticket_id: int) -> bool:
        stmt = select(TicketModel.id).where(TicketModel.id == ticket_id)
        with translate_store_errors():
            result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list(
        self,
        filters: dict,
        limit: int = 50,
        offset: int = 0
    ) -> List[Ticket]:
        """List tickets with exact-match filters, newest first."""
        stmt = select(TicketModel)

        conditions = [
            column == filters[name]
            for name, column in _FILTER_COLUMNS.items()
            if filters.get(name) is not None
        ]
        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = _newest_first(stmt).limit(limit).offset(offset)

        with translate_store_errors():
            result = await self._session.execute(stmt)
        return [_ticket_to_entity(m) for m in result.scalars().all()]

    async def search(
        self,
        text: str,
        limit: int = 50,
        offset: int = 0,
        created_by: Optional[int] = None
    ) -> List[Ticket]:
        """
        Case-insensitive substring match on title, description or any comment.

        Comment matches go through a subquery so each ticket appears once.
        """
        commented = select(CommentModel.ticket_id).where(
            CommentModel.content.icontains(text, autoescape=True)
        )
        stmt = select(TicketModel).where(
            or_(
                TicketModel.title.icontains(text, autoescape=True),
                TicketModel.description.icontains(text, autoescape=True),
                TicketModel.id.in_(commented),
            )
        )
        if created_by is not None:
            stmt = stmt.where(TicketModel.created_by == created_by)

        stmt = _newest_first(stmt).limit(limit).offset(offset)

        with translate_store_errors():
            result = await self._session.execute(stmt)
        return [_ticket_to_entity(m) for m in result.scalars().all()]

    async def update_if_version(
        self,
        ticket_id: int,
        expected_version: int,
        values: dict,
        now: datetime
    ) -> bool:
        """
        Compare-and-swap on version.

        Returns False when no row matched id AND version; the caller decides
        whether that was a missing ticket or a stale version.
        """
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == ticket_id, TicketModel.version == expected_version)
            .values(**values, version=TicketModel.version + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        with translate_store_errors():
            result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def find_sla_breached(self, now: datetime, created_by: Optional[int] = None) -> List[Ticket]:
        """Past-due unresolved tickets, whatever their current breach flag."""
        stmt = select(TicketModel).where(
            TicketModel.sla_due_date < now,
            TicketModel.status.not_in(TERMINAL_STATUSES),
        )
        if created_by is not None:
            stmt = stmt.where(TicketModel.created_by == created_by)
        stmt = stmt.order_by(TicketModel.sla_due_date.asc(), TicketModel.id.asc())

        with translate_store_errors():
            result = await self._session.execute(stmt)
        return [_ticket_to_entity(m) for m in result.scalars().all()]

    async def mark_sla_breached(self, ticket_id: int, now: datetime) -> bool:
        """
        Flip sla_breached false -> true in one conditional write.

        Leaves version and updated_at untouched: the flag is maintained by
        the system, not by a user mutation.
        """
        stmt = (
            update(TicketModel)
            .where(
                TicketModel.id == ticket_id,
                TicketModel.sla_breached.is_(False),
                TicketModel.sla_due_date < now,
                TicketModel.status.not_in(TERMINAL_STATUSES),
            )
            .values(sla_breached=True)
            .execution_options(synchronize_session=False)
        )
        with translate_store_errors():
            result = await self._session.execute(stmt)
        return result.rowcount == 1


class SQLAlchemyCommentRepository(ICommentRepository):
    """SQLAlchemy implementation for ticket comments."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(
        self,
        ticket_id: int,
        author_id: int,
        content: str,
        parent_comment_id: Optional[int],
        now: datetime
    ) -> Comment:
        model = CommentModel(
            ticket_id=ticket_id,
            author_id=author_id,
            content=content,
            parent_comment_id=parent_comment_id,
            created_at=now,
        )
        self._session.add(model)
        with translate_store_errors():
            await self._session.flush()
        return _comment_to_entity(model)

    async def get_by_id(self, comment_id: int) -> Optional[Comment]:
        with translate_store_errors():
            model = await self._session.get(CommentModel, comment_id)
        return _comment_to_entity(model) if model else None

    async def list_for_ticket(self, ticket_id: int) -> List[Comment]:
        stmt = (
            select(CommentModel)
            .where(CommentModel.ticket_id == ticket_id)
            .order_by(CommentModel.created_at.asc(), CommentModel.id.asc())
        )
        with translate_store_errors():
            result = await self._session.execute(stmt)
        return [_comment_to_entity(m) for m in result.scalars().all()]


class SQLAlchemyHistoryRepository(IHistoryRepository):
    """SQLAlchemy implementation of the append-only audit trail."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(
        self,
        ticket_id: int,
        actor_id: int,
        action: str,
        new_value: Any,
        now: datetime,
        old_value: Any = None
    ) -> HistoryEntry:
        model = HistoryModel(
            ticket_id=ticket_id,
            actor_id=actor_id,
            action=action,
            old_value=old_value,
            new_value=new_value,
            created_at=now,
        )
        self._session.add(model)
        with translate_store_errors():
            await self._session.flush()
        return _history_to_entity(model)

    async def list_for_ticket(self, ticket_id: int) -> List[HistoryEntry]:
        stmt = (
            select(HistoryModel)
            .where(HistoryModel.ticket_id == ticket_id)
            .order_by(HistoryModel.created_at.asc(), HistoryModel.id.asc())
        )
        with translate_store_errors():
            result = await self._session.execute(stmt)
        return [_history_to_entity(m) for m in result.scalars().all()]
