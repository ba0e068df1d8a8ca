"""
Users Infrastructure Repositories
=================================

SQLAlchemy implementation of the user repository.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import UserRole
from helpdesk.infrastructure.database import translate_store_errors
from helpdesk.shared.infrastructure.clock import as_utc
from helpdesk.users.application.services import IUserRepository
from helpdesk.users.domain import User
from helpdesk.users.infrastructure.models import UserModel


def _to_entity(model: UserModel) -> User:
    return User(
        id=model.id,
        username=model.username,
        email=model.email,
        role=model.role,
        created_at=as_utc(model.created_at),
        updated_at=as_utc(model.updated_at),
    )


class SQLAlchemyUserRepository(IUserRepository):
    """
    SQLAlchemy implementation of user repository.

    Handles persistence of User entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, user_id: int) -> Optional[User]:
        with translate_store_errors():
            model = await self._session.get(UserModel, user_id)
        return _to_entity(model) if model else None

    async def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(UserModel).where(UserModel.email == email)
        with translate_store_errors():
            result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def get_by_username(self, username: str) -> Optional[User]:
        stmt = select(UserModel).where(UserModel.username == username)
        with translate_store_errors():
            result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def create(
        self,
        username: str,
        email: str,
        password_hash: str,
        role: UserRole,
        now,
    ) -> User:
        model = UserModel(
            username=username,
            email=email,
            password_hash=password_hash,
            role=role,
            created_at=now,
            updated_at=now,
        )
        self._session.add(model)
        # Unique constraints back up the service's pre-checks under races
        with translate_store_errors("Username or email already registered"):
            await self._session.flush()
        return _to_entity(model)

    async def list(
        self,
        role: Optional[UserRole] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[User]:
        stmt = select(UserModel)
        if role:
            stmt = stmt.where(UserModel.role == role)
        stmt = stmt.order_by(UserModel.created_at.desc(), UserModel.id.desc())
        stmt = stmt.limit(limit).offset(offset)

        with translate_store_errors():
            result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def update_role(self, user_id: int, role: UserRole, now) -> Optional[User]:
        with translate_store_errors():
            model = await self._session.get(UserModel, user_id)
            if model is None:
                return None
            model.role = role
            model.updated_at = now
            await self._session.flush()
        return _to_entity(model)

    async def update_profile(self, user_id: int, changes: dict, now) -> Optional[User]:
        with translate_store_errors("Username or email already registered"):
            model = await self._session.get(UserModel, user_id)
            if model is None:
                return None
            for name in ("username", "email"):
                if name in changes:
                    setattr(model, name, changes[name])
            model.updated_at = now
            await self._session.flush()
        return _to_entity(model)

    async def get_password_hash(self, user_id: int) -> Optional[str]:
        stmt = select(UserModel.password_hash).where(UserModel.id == user_id)
        with translate_store_errors():
            result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_password(self, user_id: int, password_hash: str, now) -> bool:
        with translate_store_errors():
            model = await self._session.get(UserModel, user_id)
            if model is None:
                return False
            model.password_hash = password_hash
            model.updated_at = now
            await self._session.flush()
        return True
