"""
Tickets Infrastructure Layer
============================

SQLAlchemy models and repositories for tickets, comments and history.
"""

from helpdesk.tickets.infrastructure.models import CommentModel, HistoryModel, TicketModel
from helpdesk.tickets.infrastructure.repositories import (
    SQLAlchemyCommentRepository,
    SQLAlchemyHistoryRepository,
    SQLAlchemyTicketRepository,
)

__all__ = [
    "TicketModel",
    "CommentModel",
    "HistoryModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyCommentRepository",
    "SQLAlchemyHistoryRepository",
]
