"""
SLA Application Layer
======================

Breach evaluation service and the interfaces it depends on.
"""

from helpdesk.sla.application.services import (
    BreachAlertDispatcher,
    SLAEvaluationService,
    ISLAConfigProvider,
    IBreachNotifier,
)

__all__ = [
    "BreachAlertDispatcher",
    "SLAEvaluationService",
    "ISLAConfigProvider",
    "IBreachNotifier",
]
