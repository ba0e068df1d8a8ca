"""
Tickets Application Layer
=========================

Services, repository interfaces and DTOs for ticket handling.
"""

from helpdesk.tickets.application.dto import (
    TicketCreateRequest,
    TicketUpdateRequest,
    CommentCreateRequest,
    TicketResponse,
    TicketDetailResponse,
    TicketListResponse,
    CommentResponse,
    HistoryEntryResponse,
)
from helpdesk.tickets.application.services import (
    TicketService,
    ITicketRepository,
    ICommentRepository,
    IHistoryRepository,
)

__all__ = [
    # DTOs
    "TicketCreateRequest",
    "TicketUpdateRequest",
    "CommentCreateRequest",
    "TicketResponse",
    "TicketDetailResponse",
    "TicketListResponse",
    "CommentResponse",
    "HistoryEntryResponse",
    # Services
    "TicketService",
    # Interfaces
    "ITicketRepository",
    "ICommentRepository",
    "IHistoryRepository",
]
