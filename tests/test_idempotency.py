import pytest

from helpdesk.config import ResourceType
from helpdesk.core import ConflictException, ValidationException
from helpdesk.idempotency.application import IdempotencyGuard
from helpdesk.idempotency.infrastructure import SQLAlchemyIdempotencyRepository

from conftest import T0


def guard_for(session, clock):
    return IdempotencyGuard(SQLAlchemyIdempotencyRepository(session), clock, ttl_hours=24)


@pytest.mark.asyncio
async def test_first_request_proceeds_then_replays(guard):
    decision = await guard.begin("key-1", ResourceType.TICKET)
    assert decision.proceed

    await guard.complete("key-1", ResourceType.TICKET, 17)

    replay = await guard.begin("key-1", ResourceType.TICKET)
    assert replay.replay
    assert replay.resource_id == 17
    assert replay.processed_at == T0


@pytest.mark.asyncio
async def test_keys_are_namespaced_by_resource_type(guard):
    await guard.begin("shared", ResourceType.TICKET)
    await guard.complete("shared", ResourceType.TICKET, 1)

    decision = await guard.begin("shared", ResourceType.USER)
    assert decision.proceed


@pytest.mark.asyncio
async def test_replay_within_ttl_and_fresh_run_after(guard, clock):
    await guard.begin("key-2", ResourceType.TICKET)
    await guard.complete("key-2", ResourceType.TICKET, 5)

    clock.advance(hours=23, minutes=59)
    assert (await guard.begin("key-2", ResourceType.TICKET)).replay

    clock.advance(minutes=2)
    decision = await guard.begin("key-2", ResourceType.TICKET)
    assert decision.proceed


@pytest.mark.asyncio
async def test_in_flight_duplicate_is_conflict(session_maker, clock):
    async with session_maker() as first:
        await guard_for(first, clock).begin("key-3", ResourceType.TICKET)
        await first.commit()

    async with session_maker() as second:
        with pytest.raises(ConflictException):
            await guard_for(second, clock).begin("key-3", ResourceType.TICKET)


@pytest.mark.asyncio
async def test_failed_request_leaves_key_reusable(session_maker, clock):
    async with session_maker() as failing:
        await guard_for(failing, clock).begin("key-4", ResourceType.TICKET)
        # the operation blew up; the unit of work rolls back
        await failing.rollback()

    async with session_maker() as retry:
        guard = guard_for(retry, clock)
        assert (await guard.begin("key-4", ResourceType.TICKET)).proceed
        await guard.complete("key-4", ResourceType.TICKET, 99)
        await retry.commit()

    async with session_maker() as later:
        decision = await guard_for(later, clock).begin("key-4", ResourceType.TICKET)
        assert decision.replay and decision.resource_id == 99


@pytest.mark.asyncio
async def test_duplicate_insert_is_conflict(session, clock):
    repo = SQLAlchemyIdempotencyRepository(session)
    await repo.insert("key-5", ResourceType.TICKET, T0, T0)

    with pytest.raises(ConflictException):
        await repo.insert("key-5", ResourceType.TICKET, T0, T0)


@pytest.mark.asyncio
async def test_complete_without_reservation_is_conflict(guard):
    with pytest.raises(ConflictException):
        await guard.complete("never-begun", ResourceType.TICKET, 1)


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["", "   ", "k" * 256])
async def test_bad_keys_rejected(guard, key):
    with pytest.raises(ValidationException):
        await guard.begin(key, ResourceType.TICKET)


@pytest.mark.asyncio
async def test_purge_removes_only_expired(session, guard, clock):
    await guard.begin("old", ResourceType.TICKET)
    await guard.complete("old", ResourceType.TICKET, 1)
    clock.advance(hours=12)
    await guard.begin("new", ResourceType.TICKET)
    await guard.complete("new", ResourceType.TICKET, 2)

    clock.advance(hours=13)
    assert await guard.purge_expired() == 1

    repo = SQLAlchemyIdempotencyRepository(session)
    assert await repo.get("old", ResourceType.TICKET) is None
    assert (await repo.get("new", ResourceType.TICKET)).resource_id == 2
