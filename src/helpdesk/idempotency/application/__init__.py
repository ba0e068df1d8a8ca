"""
Idempotency Application Layer
=============================
"""

from helpdesk.idempotency.application.dto import ReplayResponse
from helpdesk.idempotency.application.services import IdempotencyGuard, IIdempotencyRepository

__all__ = [
    "ReplayResponse",
    "IdempotencyGuard",
    "IIdempotencyRepository",
]
