"""
SLA Dependencies
================

The SLA policy and the breach alert dispatcher are fixed when the process
starts and shared by every request and by the background sweep.
"""

from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.sla.application import (
    BreachAlertDispatcher,
    IBreachNotifier,
    ISLAConfigProvider,
    SLAEvaluationService,
)
from helpdesk.sla.domain import SLAPolicy
from helpdesk.sla.infrastructure import SLAConfigProvider

_config_provider: Optional[ISLAConfigProvider] = None
_alerts: Optional[BreachAlertDispatcher] = None


def configure_sla(
    config_provider: ISLAConfigProvider,
    notifier: Optional[IBreachNotifier] = None
) -> None:
    """Install the process-wide SLA collaborators (called from the lifespan)."""
    global _config_provider, _alerts
    _config_provider = config_provider
    _alerts = BreachAlertDispatcher(notifier) if notifier is not None else None


def get_sla_policy() -> SLAPolicy:
    """FastAPI dependency returning the SLA policy."""
    global _config_provider
    if _config_provider is None:
        _config_provider = SLAConfigProvider()
    return _config_provider.get_policy()


def get_breach_alerts() -> Optional[BreachAlertDispatcher]:
    """FastAPI dependency returning the alert dispatcher, if a notifier is configured."""
    return _alerts


def alert_after_commit(
    session: AsyncSession,
    evaluator: SLAEvaluationService,
    alerts: Optional[BreachAlertDispatcher]
) -> None:
    """
    Announce the evaluator's breaches once the session commits.

    A rollback discards them, so a flag that never reached the store is
    never announced.
    """
    def on_commit(_session) -> None:
        pending = evaluator.take_pending()
        if alerts is not None:
            alerts.dispatch(pending)

    def on_rollback(_session) -> None:
        evaluator.take_pending()

    event.listen(session.sync_session, "after_commit", on_commit)
    event.listen(session.sync_session, "after_rollback", on_rollback)
