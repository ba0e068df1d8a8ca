"""
Idempotency Infrastructure Layer
================================
"""

from helpdesk.idempotency.infrastructure.models import IdempotencyKeyModel
from helpdesk.idempotency.infrastructure.repositories import SQLAlchemyIdempotencyRepository

__all__ = [
    "IdempotencyKeyModel",
    "SQLAlchemyIdempotencyRepository",
]
