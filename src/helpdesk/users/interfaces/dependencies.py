"""
User Dependencies
=================

Request-scoped wiring for the users module and the identity seam.

Credential verification happens upstream; the gateway forwards the
authenticated user id in `X-User-Id` and this module turns it into an Actor.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core import UnauthorizedException
from helpdesk.infrastructure.database import get_session
from helpdesk.shared.infrastructure.clock import Clock, get_clock
from helpdesk.users.application import UserService
from helpdesk.users.domain import Actor
from helpdesk.users.infrastructure import PasslibPasswordHasher, SQLAlchemyUserRepository


async def get_user_service(
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock)
) -> UserService:
    """Get user service instance."""
    return UserService(SQLAlchemyUserRepository(session), PasslibPasswordHasher(), clock)


async def get_optional_actor(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    user_service: UserService = Depends(get_user_service)
) -> Optional[Actor]:
    """
    Resolve the forwarded user id, or None when the header is absent.

    Raises:
        UnauthorizedException: header present but not a known user
    """
    if x_user_id is None:
        return None
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise UnauthorizedException("Invalid X-User-Id header")

    actor = await user_service.resolve_actor(user_id)
    if actor is None:
        raise UnauthorizedException("Unknown user")
    return actor


async def get_current_actor(
    actor: Optional[Actor] = Depends(get_optional_actor)
) -> Actor:
    """
    Require an authenticated actor.

    Raises:
        UnauthorizedException: no X-User-Id header
    """
    if actor is None:
        raise UnauthorizedException("Authentication required")
    return actor
