"""
Ticket Controllers (API Routes)
===============================

FastAPI routes for tickets, comments and the audit trail.

Controllers are thin - they delegate to application services.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import ResourceType
from helpdesk.idempotency.application import IdempotencyGuard, ReplayResponse
from helpdesk.idempotency.interfaces import (
    get_idempotency_guard,
    replay_response,
    require_idempotency_key,
)
from helpdesk.infrastructure.database import get_session
from helpdesk.shared.infrastructure.clock import Clock, get_clock
from helpdesk.sla.application import BreachAlertDispatcher, SLAEvaluationService
from helpdesk.sla.domain import SLAPolicy
from helpdesk.sla.interfaces import alert_after_commit, get_breach_alerts, get_sla_policy
from helpdesk.tickets.application import (
    CommentCreateRequest,
    CommentResponse,
    HistoryEntryResponse,
    TicketCreateRequest,
    TicketDetailResponse,
    TicketListResponse,
    TicketResponse,
    TicketService,
    TicketUpdateRequest,
)
from helpdesk.tickets.application.dto import PriorityStr, TicketStatusStr
from helpdesk.tickets.infrastructure import (
    SQLAlchemyCommentRepository,
    SQLAlchemyHistoryRepository,
    SQLAlchemyTicketRepository,
)
from helpdesk.users.domain import Actor
from helpdesk.users.infrastructure import SQLAlchemyUserRepository
from helpdesk.users.interfaces import get_current_actor

router = APIRouter(prefix="/tickets", tags=["Tickets"])


# ========== Example payloads for Swagger ==========

TICKET_RESPONSE_EXAMPLE = {
    "id": 42,
    "title": "VPN drops every 10 minutes",
    "description": "Since this morning the VPN client disconnects repeatedly.",
    "status": "open",
    "priority": "urgent",
    "assigned_to": None,
    "created_by": 7,
    "version": 1,
    "sla_due_date": "2024-01-15T14:00:00Z",
    "sla_breached": False,
    "created_at": "2024-01-15T10:00:00Z",
    "updated_at": "2024-01-15T10:00:00Z"
}

CONFLICT_RESPONSE_EXAMPLE = {
    "detail": "Ticket was modified by another user. Please refresh and try again.",
    "details": {"ticket_id": 42, "expected_version": 1, "current_version": 2}
}


# ========== Dependencies ==========

async def get_ticket_service(
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    sla_policy: SLAPolicy = Depends(get_sla_policy),
    alerts: Optional[BreachAlertDispatcher] = Depends(get_breach_alerts)
) -> TicketService:
    """Get ticket service instance."""
    ticket_repo = SQLAlchemyTicketRepository(session)
    evaluator = SLAEvaluationService(ticket_repo, clock)
    alert_after_commit(session, evaluator, alerts)
    return TicketService(
        ticket_repository=ticket_repo,
        comment_repository=SQLAlchemyCommentRepository(session),
        history_repository=SQLAlchemyHistoryRepository(session),
        user_repository=SQLAlchemyUserRepository(session),
        sla_policy=sla_policy,
        sla_evaluator=evaluator,
        clock=clock,
    )


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="File a ticket",
    description="""
    Create a ticket at version 1 with its SLA deadline derived from priority
    (urgent/high 4h, medium 12h, low 48h).

    Requires an `Idempotency-Key` header. Repeating the request with the same
    key within 24 hours returns 200 with the id of the ticket the first
    request created; no second ticket is made.
    """,
    responses={
        201: {"content": {"application/json": {"example": TICKET_RESPONSE_EXAMPLE}}},
        200: {"model": ReplayResponse, "description": "Request already processed"},
        400: {"description": "Missing Idempotency-Key, invalid body or unknown assignee"},
        403: {"description": "Only staff may assign tickets"},
        409: {"description": "Same key still being processed"},
    }
)
async def create_ticket(
    request: TicketCreateRequest,
    idempotency_key: str = Depends(require_idempotency_key),
    actor: Actor = Depends(get_current_actor),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
    ticket_service: TicketService = Depends(get_ticket_service)
):
    decision = await guard.begin(idempotency_key, ResourceType.TICKET)
    if decision.replay:
        return replay_response(decision)

    ticket = await ticket_service.create_ticket(
        actor,
        title=request.title,
        description=request.description,
        priority=request.priority,
        assigned_to=request.assigned_to,
    )
    await guard.complete(idempotency_key, ResourceType.TICKET, ticket.id)
    return TicketResponse.from_domain(ticket)


@router.get(
    "",
    response_model=TicketListResponse,
    summary="List or search tickets",
    description="""
    Newest first. Filters are exact matches combined with AND. When `search`
    is given, filters are ignored and tickets whose title, description or
    comments contain the text (case-insensitive) are returned.

    Plain users only ever see their own tickets.
    """
)
async def list_tickets(
    ticket_status: Optional[TicketStatusStr] = Query(None, alias="status", description="Filter by status"),
    priority: Optional[PriorityStr] = Query(None, description="Filter by priority"),
    assigned_to: Optional[int] = Query(None, description="Filter by assignee id"),
    created_by: Optional[int] = Query(None, description="Filter by creator id"),
    sla_breached: Optional[bool] = Query(None, description="Filter by breach flag"),
    search: Optional[str] = Query(None, min_length=1, max_length=200, description="Substring search"),
    limit: int = Query(50, ge=1, le=200, description="Results per page"),
    offset: int = Query(0, ge=0, description="Page offset"),
    actor: Actor = Depends(get_current_actor),
    ticket_service: TicketService = Depends(get_ticket_service)
):
    if search:
        tickets = await ticket_service.search_tickets(actor, search, limit=limit, offset=offset)
    else:
        filters = {
            "status": ticket_status,
            "priority": priority,
            "assigned_to": assigned_to,
            "created_by": created_by,
            "sla_breached": sla_breached,
        }
        tickets = await ticket_service.list_tickets(
            actor,
            {k: v for k, v in filters.items() if v is not None},
            limit=limit,
            offset=offset,
        )

    return TicketListResponse(
        tickets=[TicketResponse.from_domain(t) for t in tickets],
        limit=limit,
        offset=offset,
        count=len(tickets),
    )


@router.get(
    "/sla-breached",
    response_model=TicketListResponse,
    summary="Tickets past their SLA deadline",
    description="Unresolved tickets whose deadline has passed, most overdue first."
)
async def list_sla_breached(
    actor: Actor = Depends(get_current_actor),
    ticket_service: TicketService = Depends(get_ticket_service)
):
    tickets = await ticket_service.list_sla_breached(actor)
    return TicketListResponse(
        tickets=[TicketResponse.from_domain(t) for t in tickets],
        limit=len(tickets),
        offset=0,
        count=len(tickets),
    )


@router.get(
    "/{ticket_id}",
    response_model=TicketDetailResponse,
    summary="Get a ticket with comments and history",
    responses={403: {"description": "Not your ticket"}, 404: {"description": "Ticket not found"}}
)
async def get_ticket(
    ticket_id: int,
    actor: Actor = Depends(get_current_actor),
    ticket_service: TicketService = Depends(get_ticket_service)
):
    ticket = await ticket_service.get_ticket(actor, ticket_id)
    comments = await ticket_service.list_comments(actor, ticket_id)
    history = await ticket_service.get_history(actor, ticket_id)

    return TicketDetailResponse(
        **TicketResponse.from_domain(ticket).model_dump(),
        comments=[CommentResponse.from_domain(c) for c in comments],
        history=[HistoryEntryResponse.from_domain(h) for h in history],
    )


@router.patch(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Update a ticket (optimistic concurrency)",
    description="""
    Send the `version` you last read along with the fields to change. If the
    ticket moved on since then the update is rejected with 409 and nothing
    changes; re-read and retry.

    A priority change restarts the SLA deadline from now.
    """,
    responses={
        400: {"description": "No updatable field supplied"},
        403: {"description": "Not allowed to modify this ticket"},
        404: {"description": "Ticket not found"},
        409: {"content": {"application/json": {"example": CONFLICT_RESPONSE_EXAMPLE}}},
    }
)
async def update_ticket(
    ticket_id: int,
    request: TicketUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    ticket_service: TicketService = Depends(get_ticket_service)
):
    ticket = await ticket_service.update_ticket(actor, ticket_id, request.version, request.changes())
    return TicketResponse.from_domain(ticket)


@router.post(
    "/{ticket_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a ticket",
    responses={400: {"description": "Parent comment not on this ticket"}}
)
async def add_comment(
    ticket_id: int,
    request: CommentCreateRequest,
    actor: Actor = Depends(get_current_actor),
    ticket_service: TicketService = Depends(get_ticket_service)
):
    comment = await ticket_service.add_comment(
        actor, ticket_id, request.content, request.parent_comment_id
    )
    return CommentResponse.from_domain(comment)


@router.get("/{ticket_id}/comments", response_model=List[CommentResponse], summary="Comment thread")
async def list_comments(
    ticket_id: int,
    actor: Actor = Depends(get_current_actor),
    ticket_service: TicketService = Depends(get_ticket_service)
):
    comments = await ticket_service.list_comments(actor, ticket_id)
    return [CommentResponse.from_domain(c) for c in comments]


@router.get("/{ticket_id}/history", response_model=List[HistoryEntryResponse], summary="Audit trail")
async def get_history(
    ticket_id: int,
    actor: Actor = Depends(get_current_actor),
    ticket_service: TicketService = Depends(get_ticket_service)
):
    history = await ticket_service.get_history(actor, ticket_id)
    return [HistoryEntryResponse.from_domain(h) for h in history]


# Export router for inclusion in main app
tickets_router = router
