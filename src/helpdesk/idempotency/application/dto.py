"""
Idempotency Application DTOs
============================
"""

from datetime import datetime

from pydantic import BaseModel


class ReplayResponse(BaseModel):
    """Answer to a creation request whose Idempotency-Key was already used."""
    message: str = "Request already processed"
    resource_id: int
    processed_at: datetime

    @classmethod
    def from_decision(cls, decision) -> "ReplayResponse":
        return cls(resource_id=decision.resource_id, processed_at=decision.processed_at)
