"""
Idempotency Domain Entities
===========================

A record ties (key, resource_type) to the id of the resource created under
that key. The resource id stays empty between `begin` and `complete`.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class IdempotencyRecord:
    """Ledger row for one Idempotency-Key within one resource type."""
    key: str
    resource_type: str
    created_at: datetime
    expires_at: datetime
    resource_id: Optional[int] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    @property
    def is_complete(self) -> bool:
        return self.resource_id is not None


@dataclass(frozen=True)
class IdempotencyDecision:
    """
    Outcome of `IdempotencyGuard.begin`.

    Either run the operation (`proceed`) or answer with the resource created
    by the earlier request (`replay`).
    """
    replay: bool
    resource_id: Optional[int] = None
    processed_at: Optional[datetime] = None

    @property
    def proceed(self) -> bool:
        return not self.replay

    @classmethod
    def run(cls) -> "IdempotencyDecision":
        return cls(replay=False)

    @classmethod
    def replay_of(cls, record: IdempotencyRecord) -> "IdempotencyDecision":
        return cls(replay=True, resource_id=record.resource_id, processed_at=record.created_at)
