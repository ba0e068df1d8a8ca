"""
SLA Application Services
=========================

Breach evaluation shared by the write path and the periodic sweep.

Both callers funnel into the same conditional store write, so running them
concurrently (or running the sweep twice) converges on the same state.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import List, Set, Tuple

from helpdesk.shared.infrastructure.clock import Clock
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.domain import SLACalculator, SLAPolicy
from helpdesk.tickets.domain import Ticket

logger = get_logger(__name__)


class ISLAConfigProvider(ABC):
    """Interface for SLA configuration access."""

    @abstractmethod
    def get_policy(self) -> SLAPolicy:
        """Get the SLA policy fixed at process start."""


class IBreachNotifier(ABC):
    """Interface for announcing newly breached tickets."""

    @abstractmethod
    async def notify_breach(self, ticket: Ticket) -> bool:
        """Send a breach notification; returns False if it was not delivered."""


class SLAEvaluationService:
    """
    Service for detecting SLA breaches.

    `evaluate` is called after every ticket update; `sweep` is run by the
    scheduler so breaches are caught on tickets nobody touches.

    Newly breached tickets are queued rather than announced: the flag is only
    real once the surrounding transaction commits, so callers hand
    `take_pending()` to a `BreachAlertDispatcher` after commit.
    """

    def __init__(
        self,
        ticket_repository,  # ITicketRepository
        clock: Clock
    ):
        self._ticket_repo = ticket_repository
        self._clock = clock
        self._pending: List[Ticket] = []

    async def evaluate(self, ticket: Ticket) -> Ticket:
        """
        Flag the ticket as breached if its deadline has passed while unresolved.

        Returns the ticket with the (possibly) updated flag; a no-op when the
        ticket is on time, resolved/closed, or already flagged.
        """
        evaluated, _ = await self._flag(ticket)
        return evaluated

    async def sweep(self) -> List[Ticket]:
        """
        Evaluate every past-due unresolved ticket.

        Returns:
            Tickets newly flagged by this sweep
        """
        candidates = await self._ticket_repo.find_sla_breached(self._clock.now())

        newly_breached = []
        for ticket in candidates:
            evaluated, flipped = await self._flag(ticket)
            if flipped:
                newly_breached.append(evaluated)

        logger.info(
            "SLA sweep finished",
            extra={
                "tickets_evaluated": len(candidates),
                "tickets_breached": len(newly_breached)
            }
        )
        return newly_breached

    def take_pending(self) -> List[Ticket]:
        """Return and forget the tickets flagged since the last call."""
        pending, self._pending = self._pending, []
        return pending

    async def _flag(self, ticket: Ticket) -> Tuple[Ticket, bool]:
        now = self._clock.now()
        if not SLACalculator.should_flag(ticket.sla_due_date, ticket.status, ticket.sla_breached, now):
            return ticket, False

        flipped = await self._ticket_repo.mark_sla_breached(ticket.id, now)
        if not flipped:
            # Another evaluator got there first, or the ticket moved on
            current = await self._ticket_repo.get_by_id(ticket.id)
            return current or ticket, False

        breached = replace(ticket, sla_breached=True)
        logger.warning(
            "SLA breached",
            extra={
                "ticket_id": ticket.id,
                "priority": ticket.priority,
                "sla_due_date": ticket.sla_due_date.isoformat(),
                "overdue_minutes": int((now - ticket.sla_due_date).total_seconds() // 60)
            }
        )
        self._pending.append(breached)
        return breached, True


class BreachAlertDispatcher:
    """
    Delivers breach alerts in the background.

    Each alert runs as its own task so a slow or failing notifier never
    holds up the request or the sweep that flagged the ticket.
    """

    def __init__(self, notifier: IBreachNotifier):
        self._notifier = notifier
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def dispatch(self, tickets: List[Ticket]) -> None:
        """Schedule one alert per ticket; must be called from the event loop."""
        for ticket in tickets:
            task = asyncio.get_running_loop().create_task(self._deliver(ticket))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every alert still in flight."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _deliver(self, ticket: Ticket) -> None:
        try:
            delivered = await self._notifier.notify_breach(ticket)
        except Exception:
            logger.exception("Breach alert raised", extra={"ticket_id": ticket.id})
            return
        if not delivered:
            logger.warning("Breach alert not delivered", extra={"ticket_id": ticket.id})
