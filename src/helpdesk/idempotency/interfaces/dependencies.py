"""
Idempotency Dependencies
========================

The guard shares the request's session with the creating service, so
reservation, creation and backfill commit together.
"""

from typing import Optional

from fastapi import Depends, Header, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import settings
from helpdesk.core import ValidationException
from helpdesk.idempotency.application import IdempotencyGuard, ReplayResponse
from helpdesk.idempotency.domain import IdempotencyDecision
from helpdesk.idempotency.infrastructure import SQLAlchemyIdempotencyRepository
from helpdesk.infrastructure.database import get_session
from helpdesk.shared.infrastructure.clock import Clock, get_clock

IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"


async def get_idempotency_guard(
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock)
) -> IdempotencyGuard:
    """Get idempotency guard instance."""
    return IdempotencyGuard(
        SQLAlchemyIdempotencyRepository(session),
        clock,
        ttl_hours=settings.idempotency_ttl_hours,
    )


async def require_idempotency_key(
    idempotency_key: Optional[str] = Header(None, alias=IDEMPOTENCY_KEY_HEADER)
) -> str:
    """
    Raises:
        ValidationException: header missing
    """
    if idempotency_key is None:
        raise ValidationException(f"{IDEMPOTENCY_KEY_HEADER} header is required for POST requests")
    return idempotency_key


def replay_response(decision: IdempotencyDecision) -> JSONResponse:
    """200 answer pointing at the resource the first request created."""
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=ReplayResponse.from_decision(decision).model_dump(mode="json"),
    )
