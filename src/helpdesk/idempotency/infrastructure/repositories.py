"""
Idempotency Infrastructure Repositories
=======================================

SQLAlchemy implementation of the idempotency ledger.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.idempotency.application.services import IIdempotencyRepository
from helpdesk.idempotency.domain import IdempotencyRecord
from helpdesk.idempotency.infrastructure.models import IdempotencyKeyModel
from helpdesk.infrastructure.database import translate_store_errors
from helpdesk.shared.infrastructure.clock import as_utc


def _to_entity(model: IdempotencyKeyModel) -> IdempotencyRecord:
    return IdempotencyRecord(
        key=model.key,
        resource_type=model.resource_type,
        resource_id=model.resource_id,
        created_at=as_utc(model.created_at),
        expires_at=as_utc(model.expires_at),
    )


class SQLAlchemyIdempotencyRepository(IIdempotencyRepository):
    """Ledger rows live in the request's session, committed with the resource."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, key: str, resource_type: str) -> Optional[IdempotencyRecord]:
        stmt = (
            select(IdempotencyKeyModel)
            .where(
                IdempotencyKeyModel.key == key,
                IdempotencyKeyModel.resource_type == resource_type,
            )
            .execution_options(populate_existing=True)
        )
        with translate_store_errors():
            result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def insert(
        self,
        key: str,
        resource_type: str,
        created_at: datetime,
        expires_at: datetime
    ) -> IdempotencyRecord:
        model = IdempotencyKeyModel(
            key=key,
            resource_type=resource_type,
            created_at=created_at,
            expires_at=expires_at,
        )
        self._session.add(model)
        with translate_store_errors("Request with this Idempotency-Key is already in progress"):
            await self._session.flush()
        return _to_entity(model)

    async def set_resource(self, key: str, resource_type: str, resource_id: int) -> bool:
        stmt = (
            update(IdempotencyKeyModel)
            .where(
                IdempotencyKeyModel.key == key,
                IdempotencyKeyModel.resource_type == resource_type,
            )
            .values(resource_id=resource_id)
            .execution_options(synchronize_session=False)
        )
        with translate_store_errors():
            result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def delete(self, key: str, resource_type: str) -> None:
        stmt = (
            delete(IdempotencyKeyModel)
            .where(
                IdempotencyKeyModel.key == key,
                IdempotencyKeyModel.resource_type == resource_type,
            )
            .execution_options(synchronize_session=False)
        )
        with translate_store_errors():
            await self._session.execute(stmt)

    async def delete_expired(self, now: datetime) -> int:
        stmt = (
            delete(IdempotencyKeyModel)
            .where(IdempotencyKeyModel.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        with translate_store_errors():
            result = await self._session.execute(stmt)
        return result.rowcount
