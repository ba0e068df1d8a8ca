"""
SLA Infrastructure Layer
=========================

External services for SLA monitoring (policy loading, Slack, scheduler).
"""

from helpdesk.sla.infrastructure.external import (
    CircuitBreaker,
    SLAConfigProvider,
    SLAScheduler,
    SlackBreachNotifier,
)

__all__ = [
    "CircuitBreaker",
    "SLAConfigProvider",
    "SLAScheduler",
    "SlackBreachNotifier",
]
