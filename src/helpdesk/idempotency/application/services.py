"""
Idempotency Application Services
================================

Guard for unsafe creation requests.

The guard writes through the request's session, so the ledger row, the
created resource and the backfill commit or roll back as one unit of work.
A request that fails part-way leaves no record behind and the client may
retry with the same key.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from helpdesk.core import ConflictException, ValidationException
from helpdesk.idempotency.domain import IdempotencyDecision, IdempotencyRecord
from helpdesk.shared.infrastructure.clock import Clock
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

MAX_KEY_LENGTH = 255


# ========== Repository Interfaces (Dependency Inversion) ==========

class IIdempotencyRepository(ABC):
    """Interface for the idempotency ledger."""

    @abstractmethod
    async def get(self, key: str, resource_type: str) -> Optional[IdempotencyRecord]:
        """Get the record for (key, resource_type)."""

    @abstractmethod
    async def insert(
        self,
        key: str,
        resource_type: str,
        created_at: datetime,
        expires_at: datetime
    ) -> IdempotencyRecord:
        """Insert a record without a resource id; ConflictException on duplicate."""

    @abstractmethod
    async def set_resource(self, key: str, resource_type: str, resource_id: int) -> bool:
        """Backfill the created resource id."""

    @abstractmethod
    async def delete(self, key: str, resource_type: str) -> None:
        """Remove one record."""

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """Remove every expired record; returns the number removed."""


# ========== Application Services ==========

class IdempotencyGuard:
    """
    Decide whether a keyed creation request runs or replays.

    Usage:
        decision = await guard.begin(key, ResourceType.TICKET)
        if decision.replay:
            return replay_response(decision)
        ticket = await ticket_service.create_ticket(...)
        await guard.complete(key, ResourceType.TICKET, ticket.id)
    """

    def __init__(
        self,
        repository: IIdempotencyRepository,
        clock: Clock,
        ttl_hours: int = 24
    ):
        self._repo = repository
        self._clock = clock
        self._ttl = timedelta(hours=ttl_hours)

    async def begin(self, key: str, resource_type: str) -> IdempotencyDecision:
        """
        Look up the key and either replay or reserve it.

        Raises:
            ValidationException: empty or oversized key
            ConflictException: another request holds the key and has not
                finished, or won the race to reserve it
        """
        key = (key or "").strip()
        if not key or len(key) > MAX_KEY_LENGTH:
            raise ValidationException(
                "Idempotency-Key must be 1-255 characters",
                {"max_length": MAX_KEY_LENGTH}
            )

        now = self._clock.now()
        record = await self._repo.get(key, resource_type)

        if record is not None and record.is_expired(now):
            await self._repo.delete(key, resource_type)
            logger.info(
                "Expired idempotency key discarded",
                extra={"resource_type": resource_type, "expired_at": record.expires_at.isoformat()}
            )
            record = None

        if record is not None:
            if record.is_complete:
                logger.info(
                    "Idempotent replay",
                    extra={"resource_type": resource_type, "resource_id": record.resource_id}
                )
                return IdempotencyDecision.replay_of(record)
            raise ConflictException(
                "A request with this Idempotency-Key is still being processed",
                {"resource_type": resource_type}
            )

        await self._repo.insert(key, resource_type, now, now + self._ttl)
        return IdempotencyDecision.run()

    async def complete(self, key: str, resource_type: str, resource_id: int) -> None:
        """
        Bind the reserved key to the resource just created.

        Raises:
            ConflictException: the reservation vanished before backfill
        """
        if not await self._repo.set_resource(key.strip(), resource_type, resource_id):
            raise ConflictException(
                "Idempotency-Key reservation was lost",
                {"resource_type": resource_type, "resource_id": resource_id}
            )

    async def purge_expired(self) -> int:
        """Delete expired records. Run periodically alongside the SLA sweep."""
        removed = await self._repo.delete_expired(self._clock.now())
        if removed:
            logger.info("Expired idempotency keys purged", extra={"count": removed})
        return removed
