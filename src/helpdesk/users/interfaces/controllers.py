"""
User Controllers (API Routes)
=============================

FastAPI routes for registration, profile changes and role management.

Controllers are thin - they delegate to application services.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from helpdesk.config import ResourceType
from helpdesk.idempotency.application import IdempotencyGuard, ReplayResponse
from helpdesk.idempotency.interfaces import (
    get_idempotency_guard,
    replay_response,
    require_idempotency_key,
)
from helpdesk.users.application import (
    MessageResponse,
    PasswordChangeRequest,
    UserListResponse,
    UserProfileUpdateRequest,
    UserRegisterRequest,
    UserResponse,
    UserRoleUpdateRequest,
    UserService,
)
from helpdesk.users.application.dto import UserRoleStr
from helpdesk.users.domain import Actor
from helpdesk.users.interfaces.dependencies import (
    get_current_actor,
    get_optional_actor,
    get_user_service,
)

router = APIRouter(prefix="/users", tags=["Users"])


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a user",
    description="""
    Create an account. Requires an `Idempotency-Key` header; repeating the
    request with the same key returns 200 with the id of the account the
    first request created.

    Plain `user` accounts are open to anyone. `agent` and `admin` accounts
    require an authenticated admin (`X-User-Id`).
    """,
    responses={
        200: {"model": ReplayResponse, "description": "Request already processed"},
        400: {"description": "Missing Idempotency-Key or invalid body"},
        403: {"description": "Staff role requested without admin rights"},
        409: {"description": "Username or email taken, or key still in flight"},
    }
)
async def register_user(
    request: UserRegisterRequest,
    idempotency_key: str = Depends(require_idempotency_key),
    actor: Optional[Actor] = Depends(get_optional_actor),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
    user_service: UserService = Depends(get_user_service)
):
    decision = await guard.begin(idempotency_key, ResourceType.USER)
    if decision.replay:
        return replay_response(decision)

    user = await user_service.register(
        username=request.username,
        email=request.email,
        password=request.password,
        role=request.role,
        actor=actor,
    )
    await guard.complete(idempotency_key, ResourceType.USER, user.id)
    return UserResponse.from_domain(user)


@router.get("/me", response_model=UserResponse, summary="Current user")
async def get_me(
    actor: Actor = Depends(get_current_actor),
    user_service: UserService = Depends(get_user_service)
):
    return UserResponse.from_domain(await user_service.get(actor, actor.id))


@router.patch(
    "/me",
    response_model=UserResponse,
    summary="Update own profile",
    responses={
        400: {"description": "No field supplied or invalid value"},
        409: {"description": "Username or email taken by another user"},
    }
)
async def update_me(
    request: UserProfileUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    user_service: UserService = Depends(get_user_service)
):
    user = await user_service.update_profile(actor, username=request.username, email=request.email)
    return UserResponse.from_domain(user)


@router.put(
    "/me/password",
    response_model=MessageResponse,
    summary="Change own password",
    responses={401: {"description": "Current password is incorrect"}}
)
async def change_my_password(
    request: PasswordChangeRequest,
    actor: Actor = Depends(get_current_actor),
    user_service: UserService = Depends(get_user_service)
):
    await user_service.change_password(actor, request.current_password, request.new_password)
    return MessageResponse(message="Password changed successfully")


@router.get("", response_model=UserListResponse, summary="List users (admin)")
async def list_users(
    role: Optional[UserRoleStr] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
    user_service: UserService = Depends(get_user_service)
):
    users = await user_service.list(actor, role=role, limit=limit, offset=offset)
    return UserListResponse(
        users=[UserResponse.from_domain(u) for u in users],
        limit=limit,
        offset=offset,
        count=len(users),
    )


@router.get("/{user_id}", response_model=UserResponse, summary="Get a user")
async def get_user(
    user_id: int,
    actor: Actor = Depends(get_current_actor),
    user_service: UserService = Depends(get_user_service)
):
    return UserResponse.from_domain(await user_service.get(actor, user_id))


@router.patch("/{user_id}/role", response_model=UserResponse, summary="Change a user's role (admin)")
async def change_user_role(
    user_id: int,
    request: UserRoleUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    user_service: UserService = Depends(get_user_service)
):
    user = await user_service.change_role(actor, user_id, request.role)
    return UserResponse.from_domain(user)


# Export router for inclusion in main app
users_router = router
