"""
SLA Interfaces Layer
====================

Process-wide SLA collaborators exposed as FastAPI dependencies.
"""

from helpdesk.sla.interfaces.dependencies import (
    alert_after_commit,
    configure_sla,
    get_breach_alerts,
    get_sla_policy,
)

__all__ = [
    "alert_after_commit",
    "configure_sla",
    "get_breach_alerts",
    "get_sla_policy",
]
