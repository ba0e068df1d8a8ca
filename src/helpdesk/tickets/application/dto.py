"""
Ticket Application DTOs
=======================

Data Transfer Objects for the tickets API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["urgent", "high", "medium", "low"]
TicketStatusStr = Literal["open", "in_progress", "resolved", "closed"]


# ========== Request DTOs ==========

class TicketCreateRequest(BaseModel):
    """Request model for filing a ticket."""
    title: str = Field(..., min_length=1, max_length=200, description="Short summary")
    description: str = Field(..., min_length=1, description="Full problem statement")
    priority: PriorityStr = Field(default="medium", description="Drives the SLA deadline")
    assigned_to: Optional[int] = Field(None, description="Assignee user id (staff only)")


class TicketUpdateRequest(BaseModel):
    """
    Request model for an optimistic update.

    `version` is the version the client last read. Fields left out of the
    body are not touched; unknown fields are ignored.
    """
    version: int = Field(..., ge=1, description="Version the change is based on")
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    status: Optional[TicketStatusStr] = None
    priority: Optional[PriorityStr] = None
    assigned_to: Optional[int] = None

    def changes(self) -> dict:
        """Fields the client actually sent, minus the version."""
        return self.model_dump(exclude_unset=True, exclude={"version"})


class CommentCreateRequest(BaseModel):
    """Request model for a comment or reply."""
    content: str = Field(..., min_length=1, max_length=10000)
    parent_comment_id: Optional[int] = Field(None, description="Comment being replied to")


# ========== Response DTOs ==========

class TicketResponse(BaseModel):
    """Ticket as returned by the API."""
    id: int
    title: str
    description: str
    status: TicketStatusStr
    priority: PriorityStr
    assigned_to: Optional[int] = None
    created_by: int
    version: int
    sla_due_date: datetime
    sla_breached: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, ticket) -> "TicketResponse":
        return cls(
            id=ticket.id,
            title=ticket.title,
            description=ticket.description,
            status=ticket.status,
            priority=ticket.priority,
            assigned_to=ticket.assigned_to,
            created_by=ticket.created_by,
            version=ticket.version,
            sla_due_date=ticket.sla_due_date,
            sla_breached=ticket.sla_breached,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )


class CommentResponse(BaseModel):
    """Comment as returned by the API; threads are flat with parent ids."""
    id: int
    ticket_id: int
    author_id: int
    content: str
    parent_comment_id: Optional[int] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, comment) -> "CommentResponse":
        return cls(
            id=comment.id,
            ticket_id=comment.ticket_id,
            author_id=comment.author_id,
            content=comment.content,
            parent_comment_id=comment.parent_comment_id,
            created_at=comment.created_at,
        )


class HistoryEntryResponse(BaseModel):
    """One audit trail entry."""
    id: int
    ticket_id: int
    actor_id: int
    action: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, entry) -> "HistoryEntryResponse":
        return cls(
            id=entry.id,
            ticket_id=entry.ticket_id,
            actor_id=entry.actor_id,
            action=entry.action,
            old_value=entry.old_value,
            new_value=entry.new_value,
            created_at=entry.created_at,
        )


class TicketDetailResponse(TicketResponse):
    """Ticket with its comment thread and audit trail."""
    comments: List[CommentResponse] = Field(default_factory=list)
    history: List[HistoryEntryResponse] = Field(default_factory=list)


class TicketListResponse(BaseModel):
    """Paged ticket listing."""
    tickets: List[TicketResponse]
    limit: int
    offset: int
    count: int

