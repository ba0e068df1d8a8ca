"""
Idempotency Domain Layer
========================

Contains:
- Entities: IdempotencyRecord
- Value Objects: IdempotencyDecision
"""

from helpdesk.idempotency.domain.entities import IdempotencyDecision, IdempotencyRecord

__all__ = [
    "IdempotencyDecision",
    "IdempotencyRecord",
]
