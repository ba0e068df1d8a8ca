"""
SLA Value Objects
==================

Immutable value objects and pure calculations for the SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from datetime import datetime, timedelta
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from helpdesk.config import Priority, TicketStatus, TERMINAL_STATUSES


DEFAULT_DUE_HOURS: Dict[str, int] = {
    Priority.URGENT: 4,
    Priority.HIGH: 4,
    Priority.MEDIUM: 12,
    Priority.LOW: 48,
}


class SLAPolicy(BaseModel):
    """
    Resolution-time table keyed by priority.

    Built once at process start (settings or YAML) and shared read-only.
    Unknown priorities fall back to default_hours.
    """
    model_config = ConfigDict(frozen=True)

    due_hours: Dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_DUE_HOURS),
        description="Allowed resolution hours by priority"
    )
    default_hours: int = Field(default=24, ge=1, description="Hours for unrecognised priorities")

    @field_validator("due_hours")
    @classmethod
    def validate_due_hours(cls, v: Dict[str, int]) -> Dict[str, int]:
        """Fill missing priorities with defaults and reject non-positive hours."""
        merged = dict(DEFAULT_DUE_HOURS)
        merged.update(v)
        for priority, hours in merged.items():
            if hours < 1:
                raise ValueError(f"SLA hours for '{priority}' must be positive")
        return merged

    def due_hours_for(self, priority: str) -> int:
        """
        Hours allowed to resolve a ticket of the given priority.

        Example:
            urgent -> 4, high -> 4, medium -> 12, low -> 48, anything else -> 24
        """
        return self.due_hours.get(priority, self.default_hours)

    def compute_due_date(self, priority: str, now: datetime) -> datetime:
        """Absolute deadline for a ticket prioritised at `now`."""
        return now + timedelta(hours=self.due_hours_for(priority))


class SLACalculator:
    """
    Pure functions for SLA breach decisions.

    Stateless utility class - the store query, the evaluator and the tests
    all use this single definition of "breached".
    """

    @staticmethod
    def is_past_due(sla_due_date: datetime, status: TicketStatus, now: datetime) -> bool:
        """
        True when the deadline has elapsed on a ticket that is still being worked.

        Resolved and closed tickets can never newly breach.
        """
        return now > sla_due_date and status not in TERMINAL_STATUSES

    @staticmethod
    def should_flag(
        sla_due_date: datetime,
        status: TicketStatus,
        sla_breached: bool,
        now: datetime
    ) -> bool:
        """The breach flag only ever moves false -> true."""
        if sla_breached:
            return False
        return SLACalculator.is_past_due(sla_due_date, status, now)
