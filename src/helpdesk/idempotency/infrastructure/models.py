"""
Idempotency Infrastructure Models
=================================

SQLAlchemy ORM model for the idempotency ledger.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.infrastructure.database import Base


class IdempotencyKeyModel(Base):
    """
    Database model for IdempotencyRecord.

    Maps to the 'idempotency_keys' table. The unique constraint is what turns
    two concurrent first requests into one winner and one conflict.
    """
    __tablename__ = "idempotency_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    key: Mapped[str] = mapped_column(String(255), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("key", "resource_type", name="uq_idempotency_key_resource"),
    )
