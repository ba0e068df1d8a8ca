"""
SLA External Service Integrations
==================================

External services for SLA monitoring:
- SLA policy loading (settings, optionally overridden by YAML)
- Slack webhook notifications for breaches
- APScheduler for the background breach sweep
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from helpdesk.config import Settings, Priority, settings
from helpdesk.core import ConfigurationException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application.services import IBreachNotifier, ISLAConfigProvider
from helpdesk.sla.domain import SLAPolicy
from helpdesk.tickets.domain import Ticket

logger = get_logger(__name__)


class SLAConfigProvider(ISLAConfigProvider):
    """
    SLA policy fixed at process start.

    Hours come from settings (SLA_HOURS_* env vars); an optional YAML file
    with a `due_hours` mapping and `default_hours` overrides them.

    Example sla_config.yaml:
        due_hours:
          urgent: 2
          high: 4
        default_hours: 24
    """

    def __init__(self, app_settings: Settings = settings, config_path: Optional[Path] = None):
        self._settings = app_settings
        self._config_path = config_path if config_path is not None else app_settings.sla_config_path
        self._policy = self._load()

    def _load(self) -> SLAPolicy:
        data: Dict[str, Any] = {
            "due_hours": {
                Priority.URGENT: self._settings.sla_hours_urgent,
                Priority.HIGH: self._settings.sla_hours_high,
                Priority.MEDIUM: self._settings.sla_hours_medium,
                Priority.LOW: self._settings.sla_hours_low,
            },
            "default_hours": self._settings.sla_default_hours,
        }

        path = Path(self._config_path)
        if path.exists():
            with open(path, "r") as f:
                overrides = yaml.safe_load(f) or {}
            data["due_hours"].update(overrides.get("due_hours", {}))
            data["default_hours"] = overrides.get("default_hours", data["default_hours"])
            logger.info(f"Loaded SLA overrides from {path}")

        try:
            return SLAPolicy(**data)
        except ValueError as e:
            raise ConfigurationException(f"Invalid SLA configuration: {e}") from e

    def get_policy(self) -> SLAPolicy:
        return self._policy


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class SlackBreachNotifier(IBreachNotifier):
    """
    Slack webhook client with circuit breaker and retry logic.

    Delivery is best effort: failures are logged and reported as False,
    never raised into the request or the sweep.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self._channel = channel or settings.slack_channel
        self._timeout = timeout_seconds or settings.slack_timeout_seconds
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def _build_message(self, ticket: Ticket) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        return {
            "channel": self._channel,
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": "SLA Breach Alert"}
                },
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*Ticket:*\n#{ticket.id} {ticket.title}"},
                        {"type": "mrkdwn", "text": f"*Priority:*\n{ticket.priority.title()}"},
                        {"type": "mrkdwn", "text": f"*Status:*\n{ticket.status}"},
                        {"type": "mrkdwn", "text": f"*Assigned to:*\n{ticket.assigned_to or 'unassigned'}"},
                    ]
                },
                {
                    "type": "context",
                    "elements": [
                        {"type": "mrkdwn", "text": f"Due: {ticket.sla_due_date.isoformat()}"}
                    ]
                }
            ]
        }

    async def notify_breach(self, ticket: Ticket, max_retries: int = 3) -> bool:
        if not self._webhook_url:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"ticket_id": ticket.id}
            )
            return False

        message = self._build_message(ticket)

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info("Slack notification sent", extra={"ticket_id": ticket.id})
                    return True

                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                logger.error(
                    "Slack notification failed",
                    extra={"error": str(e), "attempt": attempt + 1, "ticket_id": ticket.id}
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class SLAScheduler:
    """
    Wrapper for APScheduler owning the background SLA jobs.

    Started and stopped by the application lifespan. Each job runs with
    max_instances=1 so sweeps never overlap.
    """

    def __init__(self, interval_minutes: int = 5):
        self.interval_minutes = interval_minutes
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, jobs: Dict[str, Callable[[], Awaitable[None]]]) -> None:
        """Start the scheduler with the given job functions keyed by job id."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()

        for job_id, job_func in jobs.items():
            self._scheduler.add_job(
                job_func,
                "interval",
                minutes=self.interval_minutes,
                id=job_id,
                name=job_id.replace("_", " ").title(),
                misfire_grace_time=60,
                max_instances=1,
                coalesce=True,
                replace_existing=True
            )

        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={"interval_minutes": self.interval_minutes, "jobs": sorted(jobs)}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
