import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SLA_SWEEP_INTERVAL_MINUTES", "0")
os.environ.setdefault("SLA_CONFIG_PATH", "tests/does-not-exist.yaml")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import helpdesk.idempotency.infrastructure.models  # noqa: F401
import helpdesk.tickets.infrastructure.models  # noqa: F401
import helpdesk.users.infrastructure.models  # noqa: F401
from helpdesk.config import UserRole
from helpdesk.idempotency.application import IdempotencyGuard
from helpdesk.idempotency.infrastructure import SQLAlchemyIdempotencyRepository
from helpdesk.infrastructure.database import Base
from helpdesk.shared.infrastructure.clock import Clock
from helpdesk.sla.application import SLAEvaluationService
from helpdesk.sla.domain import SLAPolicy
from helpdesk.tickets.application import TicketService
from helpdesk.tickets.infrastructure import (
    SQLAlchemyCommentRepository,
    SQLAlchemyHistoryRepository,
    SQLAlchemyTicketRepository,
)
from helpdesk.users.infrastructure import SQLAlchemyUserRepository

T0 = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


class FrozenClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    async def notify_breach(self, ticket) -> bool:
        self.sent.append(ticket.id)
        return True


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session
        await session.rollback()


async def _make_user(session, clock, username, role):
    repo = SQLAlchemyUserRepository(session)
    user = await repo.create(
        username=username,
        email=f"{username}@example.com",
        password_hash="not-a-real-hash",
        role=role,
        now=clock.now(),
    )
    await session.commit()
    return user


@pytest.fixture
async def admin(session, clock):
    return (await _make_user(session, clock, "admin", UserRole.ADMIN)).as_actor()


@pytest.fixture
async def agent(session, clock):
    return (await _make_user(session, clock, "agent", UserRole.AGENT)).as_actor()


@pytest.fixture
async def alice(session, clock):
    return (await _make_user(session, clock, "alice", UserRole.USER)).as_actor()


@pytest.fixture
async def bob(session, clock):
    return (await _make_user(session, clock, "bob", UserRole.USER)).as_actor()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def policy():
    return SLAPolicy()


def build_ticket_service(session, clock, policy=None, ticket_repository=None, evaluator=None):
    tickets = ticket_repository or SQLAlchemyTicketRepository(session)
    return TicketService(
        ticket_repository=tickets,
        comment_repository=SQLAlchemyCommentRepository(session),
        history_repository=SQLAlchemyHistoryRepository(session),
        user_repository=SQLAlchemyUserRepository(session),
        sla_policy=policy or SLAPolicy(),
        sla_evaluator=evaluator or SLAEvaluationService(tickets, clock),
        clock=clock,
    )


@pytest.fixture
def ticket_service(session, clock, policy, evaluator):
    return build_ticket_service(session, clock, policy, evaluator=evaluator)


@pytest.fixture
def evaluator(session, clock):
    return SLAEvaluationService(SQLAlchemyTicketRepository(session), clock)


@pytest.fixture
def guard(session, clock):
    return IdempotencyGuard(SQLAlchemyIdempotencyRepository(session), clock, ttl_hours=24)


@pytest.fixture
async def client(session_maker, clock):
    from helpdesk.infrastructure.database import get_session
    from helpdesk.main import app
    from helpdesk.shared.infrastructure.clock import get_clock
    from helpdesk.sla.interfaces import get_sla_policy

    async def override_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_sla_policy] = lambda: SLAPolicy()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def auth(actor, **headers):
    return {"X-User-Id": str(actor.id), **headers}
