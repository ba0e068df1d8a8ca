"""
Helpdesk Tickets - Main Application
===================================

Support ticket service with optimistic concurrency and SLA tracking.

Modules:
- Tickets: filing, version-checked updates, comments, audit trail
- SLA Monitoring: deadlines, breach flagging, background sweep
- Idempotency: replay-safe creation requests
- Users: registration and roles

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects and policies
- Infrastructure: Database, Slack, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration
from helpdesk.config import settings

# Infrastructure
from helpdesk.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from helpdesk.shared.infrastructure.clock import get_clock
from helpdesk.shared.infrastructure.logging import get_logger, log_latency, setup_logging

# SLA Module
from helpdesk.sla.application import SLAEvaluationService
from helpdesk.sla.infrastructure import SLAConfigProvider, SLAScheduler, SlackBreachNotifier
from helpdesk.sla.interfaces import configure_sla, get_breach_alerts

# Idempotency Module
from helpdesk.idempotency.application import IdempotencyGuard
from helpdesk.idempotency.infrastructure import SQLAlchemyIdempotencyRepository

# Tickets Module
from helpdesk.tickets.infrastructure import SQLAlchemyTicketRepository

# Module Routers
from helpdesk.tickets.interfaces import tickets_router
from helpdesk.users.interfaces import users_router

# Middleware
from helpdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)

logger = get_logger(__name__)

# Global service instances
sla_scheduler: Optional[SLAScheduler] = None


async def sla_sweep_job() -> None:
    """Background SLA breach sweep."""
    async with get_session_context() as session:
        evaluator = SLAEvaluationService(SQLAlchemyTicketRepository(session), get_clock())
        with log_latency(logger, "sla_sweep"):
            await evaluator.sweep()

    # Flags are committed; alert outside the transaction
    alerts = get_breach_alerts()
    if alerts is not None:
        alerts.dispatch(evaluator.take_pending())
        await alerts.drain()


async def idempotency_purge_job() -> None:
    """Background removal of expired Idempotency-Key records."""
    async with get_session_context() as session:
        guard = IdempotencyGuard(
            SQLAlchemyIdempotencyRepository(session),
            get_clock(),
            ttl_hours=settings.idempotency_ttl_hours,
        )
        with log_latency(logger, "idempotency_purge"):
            await guard.purge_expired()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database
    3. Create database tables
    4. Load SLA policy
    5. Start SLA scheduler

    SHUTDOWN:
    1. Stop SLA scheduler
    2. Finish in-flight breach alerts, close Slack client
    3. Close database connections
    """
    global sla_scheduler

    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Helpdesk Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Development convenience; production runs migrations
    logger.info("Creating database tables")
    await create_tables()

    logger.info("Loading SLA configuration")
    slack_client = SlackBreachNotifier()
    app.state.breach_notifier = slack_client if settings.slack_webhook_url else None
    configure_sla(SLAConfigProvider(settings), app.state.breach_notifier)

    if settings.sla_sweep_interval_minutes > 0:
        sla_scheduler = SLAScheduler(interval_minutes=settings.sla_sweep_interval_minutes)
        await sla_scheduler.start({
            "sla_sweep": sla_sweep_job,
            "idempotency_purge": idempotency_purge_job,
        })
    else:
        logger.info("SLA sweep disabled")

    logger.info("Helpdesk Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Helpdesk Service")

    if sla_scheduler:
        await sla_scheduler.stop()
        sla_scheduler = None

    alerts = get_breach_alerts()
    if alerts is not None:
        await alerts.drain()
    await slack_client.close()
    await close_database()

    logger.info("Helpdesk Service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Helpdesk Tickets API",
    description="""
    ## Support Ticket Service

    Ticket filing, triage and resolution under SLA deadlines.

    - Updates are optimistic: send the `version` you read, get 409 if it moved on
    - Creation requests require an `Idempotency-Key` header and replay safely
    - SLA deadlines follow priority (urgent/high 4h, medium 12h, low 48h)
    - A background sweep flags overdue tickets every 5 minutes

    Callers are identified by the `X-User-Id` header set by the auth gateway.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
register_exception_handlers(app)

# === Include Module Routers ===
app.include_router(tickets_router)
app.include_router(users_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "sla_scheduler": "running",
                        "slack": "configured"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """Health check endpoint for load balancers and orchestrators."""
    checks = {
        "sla_scheduler": "running" if sla_scheduler and sla_scheduler.is_running else "stopped",
        "slack": "configured" if getattr(request.app.state, "breach_notifier", None) else "not_configured",
    }
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "helpdesk.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )
