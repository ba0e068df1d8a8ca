"""
Users Application Services
==========================

Registration, profile changes and role management.

Credential hashing and token issuance are collaborators: the service asks an
IPasswordHasher for a hash and never handles tokens at all.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from helpdesk.config import UserRole
from helpdesk.core import (
    ConflictException,
    ForbiddenException,
    ResourceNotFoundException,
    UnauthorizedException,
    ValidationException,
)
from helpdesk.shared.infrastructure.clock import Clock
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.users.domain import Actor, User

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IUserRepository(ABC):
    """Interface for user data access."""

    @abstractmethod
    async def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by id."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[User]:
        """Get user by username."""

    @abstractmethod
    async def create(self, username: str, email: str, password_hash: str, role: UserRole, now) -> User:
        """Insert a user."""

    @abstractmethod
    async def list(self, role: Optional[UserRole] = None, limit: int = 50, offset: int = 0) -> List[User]:
        """List users newest first."""

    @abstractmethod
    async def update_role(self, user_id: int, role: UserRole, now) -> Optional[User]:
        """Change a user's role."""

    @abstractmethod
    async def update_profile(self, user_id: int, changes: dict, now) -> Optional[User]:
        """Change username and/or email."""

    @abstractmethod
    async def get_password_hash(self, user_id: int) -> Optional[str]:
        """Stored credential hash, if the account exists."""

    @abstractmethod
    async def update_password(self, user_id: int, password_hash: str, now) -> bool:
        """Replace the stored credential hash."""


class IPasswordHasher(ABC):
    """Interface for the credential hashing collaborator."""

    @abstractmethod
    def hash(self, password: str) -> str:
        """Hash a plaintext password."""

    @abstractmethod
    def verify(self, password: str, password_hash: str) -> bool:
        """Check a plaintext password against a stored hash."""


# ========== Application Services ==========

class UserService:
    """Registers users and manages roles."""

    def __init__(
        self,
        user_repository: IUserRepository,
        password_hasher: IPasswordHasher,
        clock: Clock
    ):
        self._users = user_repository
        self._hasher = password_hasher
        self._clock = clock

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        role: UserRole = UserRole.USER,
        actor: Optional[Actor] = None
    ) -> User:
        """
        Register a new account.

        Anyone may sign up as a plain user; staff accounts are created by an
        authenticated admin.

        Raises:
            ForbiddenException: staff role requested without an admin actor
            ConflictException: username or email already taken
        """
        if role != UserRole.USER and (actor is None or actor.role != UserRole.ADMIN):
            raise ForbiddenException("Only admins can create agent or admin accounts")

        if await self._users.get_by_email(email):
            raise ConflictException("User with this email already exists")
        if await self._users.get_by_username(username):
            raise ConflictException("Username already taken")

        user = await self._users.create(
            username=username,
            email=email,
            password_hash=self._hasher.hash(password),
            role=role,
            now=self._clock.now(),
        )
        logger.info("User registered", extra={"user_id": user.id, "role": user.role})
        return user

    async def get(self, actor: Actor, user_id: int) -> User:
        """
        Fetch an account. Users may read their own; staff may read any.

        Raises:
            ForbiddenException: plain user asking for someone else
            ResourceNotFoundException: no such user
        """
        if not actor.is_staff and actor.id != user_id:
            raise ForbiddenException("You do not have permission to view this user")
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise ResourceNotFoundException("User", str(user_id))
        return user

    async def list(
        self,
        actor: Actor,
        role: Optional[UserRole] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[User]:
        """List accounts (admins only)."""
        if actor.role != UserRole.ADMIN:
            raise ForbiddenException("Only admins can list users")
        return await self._users.list(role=role, limit=limit, offset=offset)

    async def update_profile(
        self,
        actor: Actor,
        username: Optional[str] = None,
        email: Optional[str] = None
    ) -> User:
        """
        Change the actor's own username and/or email.

        Raises:
            ValidationException: neither field supplied
            ConflictException: value already taken by another account
            ResourceNotFoundException: the account is gone
        """
        if username is None and email is None:
            raise ValidationException(
                "No valid fields to update",
                {"allowed_fields": ["username", "email"]}
            )

        current = await self._users.get_by_id(actor.id)
        if current is None:
            raise ResourceNotFoundException("User", str(actor.id))

        changes = {}
        if email is not None and email != current.email:
            existing = await self._users.get_by_email(email)
            if existing and existing.id != actor.id:
                raise ConflictException("Email already taken by another user")
            changes["email"] = email
        if username is not None and username != current.username:
            existing = await self._users.get_by_username(username)
            if existing and existing.id != actor.id:
                raise ConflictException("Username already taken by another user")
            changes["username"] = username

        if not changes:
            return current

        user = await self._users.update_profile(actor.id, changes, self._clock.now())
        if user is None:
            raise ResourceNotFoundException("User", str(actor.id))

        logger.info("User profile updated", extra={"user_id": actor.id, "changed_fields": sorted(changes)})
        return user

    async def change_password(self, actor: Actor, current_password: str, new_password: str) -> None:
        """
        Replace the actor's password after checking the current one.

        Raises:
            UnauthorizedException: current password does not match
        """
        stored = await self._users.get_password_hash(actor.id)
        if stored is None or not self._hasher.verify(current_password, stored):
            raise UnauthorizedException("Current password is incorrect")

        await self._users.update_password(actor.id, self._hasher.hash(new_password), self._clock.now())
        logger.info("User password changed", extra={"user_id": actor.id})

    async def change_role(self, actor: Actor, user_id: int, role: UserRole) -> User:
        """
        Change another user's role (admins only).

        Raises:
            ForbiddenException: actor is not an admin
            ValidationException: actor targets their own account
            ResourceNotFoundException: no such user
        """
        if actor.role != UserRole.ADMIN:
            raise ForbiddenException("Only admins can change roles")
        if actor.id == user_id:
            raise ValidationException("You cannot change your own role")

        user = await self._users.update_role(user_id, role, self._clock.now())
        if user is None:
            raise ResourceNotFoundException("User", str(user_id))

        logger.info(
            "User role changed",
            extra={"user_id": user_id, "role": role, "changed_by": actor.id}
        )
        return user

    async def resolve_actor(self, user_id: int) -> Optional[Actor]:
        """Map an authenticated user id onto an Actor, if the account exists."""
        user = await self._users.get_by_id(user_id)
        return user.as_actor() if user else None
