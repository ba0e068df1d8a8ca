"""
SLA Domain Layer
================

Contains:
- Value Objects: SLAPolicy (priority -> resolution hours)
- Domain Services: SLACalculator (breach decision)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk.sla.domain.value_objects import (
    DEFAULT_DUE_HOURS,
    SLACalculator,
    SLAPolicy,
)

__all__ = [
    "DEFAULT_DUE_HOURS",
    "SLACalculator",
    "SLAPolicy",
]
