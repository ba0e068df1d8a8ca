"""
Idempotency Interfaces Layer
============================

FastAPI dependencies used by every keyed creation route.
"""

from helpdesk.idempotency.interfaces.dependencies import (
    IDEMPOTENCY_KEY_HEADER,
    get_idempotency_guard,
    replay_response,
    require_idempotency_key,
)

__all__ = [
    "IDEMPOTENCY_KEY_HEADER",
    "get_idempotency_guard",
    "replay_response",
    "require_idempotency_key",
]
