import asyncio
from datetime import timedelta

import pytest

from helpdesk.sla.application import BreachAlertDispatcher
from helpdesk.sla.interfaces import alert_after_commit
from helpdesk.tickets.infrastructure import SQLAlchemyTicketRepository

from conftest import T0


def pending_ids(evaluator):
    return [t.id for t in evaluator.take_pending()]


class GatedNotifier:
    """Notifier that blocks until the test opens the gate."""

    def __init__(self):
        self.gate = asyncio.Event()
        self.sent = []

    async def notify_breach(self, ticket) -> bool:
        await self.gate.wait()
        self.sent.append(ticket.id)
        return True


@pytest.mark.asyncio
async def test_urgent_ticket_breaches_on_update_after_deadline(ticket_service, evaluator, alice, agent, clock):
    ticket = await ticket_service.create_ticket(alice, title="Site down", description="x", priority="urgent")
    assert ticket.sla_due_date == T0 + timedelta(hours=4)

    clock.advance(hours=5)
    updated = await ticket_service.update_ticket(agent, ticket.id, 1, {"status": "in_progress"})

    assert updated.sla_breached is True
    assert updated.version == 2
    assert pending_ids(evaluator) == [ticket.id]


@pytest.mark.asyncio
async def test_update_before_deadline_does_not_breach(ticket_service, agent, clock):
    ticket = await ticket_service.create_ticket(agent, title="Slow", description="x", priority="urgent")

    clock.advance(hours=3, minutes=59)
    updated = await ticket_service.update_ticket(agent, ticket.id, 1, {"title": "Very slow"})

    assert updated.sla_breached is False


@pytest.mark.asyncio
async def test_resolving_late_does_not_breach(ticket_service, agent, clock):
    ticket = await ticket_service.create_ticket(agent, title="Slow", description="x", priority="urgent")

    clock.advance(hours=5)
    updated = await ticket_service.update_ticket(agent, ticket.id, 1, {"status": "resolved"})

    assert updated.sla_breached is False


@pytest.mark.asyncio
async def test_breach_flag_survives_priority_downgrade(ticket_service, agent, clock):
    ticket = await ticket_service.create_ticket(agent, title="Slow", description="x", priority="urgent")
    clock.advance(hours=5)
    ticket = await ticket_service.update_ticket(agent, ticket.id, 1, {"title": "Slow!"})
    assert ticket.sla_breached

    ticket = await ticket_service.update_ticket(agent, ticket.id, 2, {"priority": "low"})

    assert ticket.sla_due_date == clock.now() + timedelta(hours=48)
    assert ticket.sla_breached is True


@pytest.mark.asyncio
async def test_sweep_flags_untouched_tickets(ticket_service, evaluator, agent, clock):
    late = await ticket_service.create_ticket(agent, title="Late", description="x", priority="medium")
    on_time = await ticket_service.create_ticket(agent, title="Fine", description="x", priority="low")
    done = await ticket_service.create_ticket(agent, title="Done", description="x", priority="medium")
    await ticket_service.update_ticket(agent, done.id, 1, {"status": "closed"})

    clock.advance(hours=13)
    flagged = await evaluator.sweep()

    assert [t.id for t in flagged] == [late.id]
    assert pending_ids(evaluator) == [late.id]
    stored = {t.id: t for t in await ticket_service.list_tickets(agent)}
    assert stored[late.id].sla_breached
    assert not stored[on_time.id].sla_breached
    assert not stored[done.id].sla_breached


@pytest.mark.asyncio
async def test_sweep_is_idempotent(ticket_service, evaluator, agent, clock):
    await ticket_service.create_ticket(agent, title="Late", description="x", priority="urgent")
    clock.advance(hours=5)

    assert len(await evaluator.sweep()) == 1
    assert await evaluator.sweep() == []
    assert len(evaluator.take_pending()) == 1


@pytest.mark.asyncio
async def test_breach_flag_does_not_bump_version(ticket_service, evaluator, agent, clock):
    ticket = await ticket_service.create_ticket(agent, title="Late", description="x", priority="urgent")
    clock.advance(hours=5)
    await evaluator.sweep()

    stored = await ticket_service.get_ticket(agent, ticket.id)
    assert stored.sla_breached
    assert stored.version == 1
    assert stored.updated_at == T0

    # A client holding version 1 can still write
    updated = await ticket_service.update_ticket(agent, ticket.id, 1, {"status": "in_progress"})
    assert updated.version == 2
    assert updated.sla_breached


@pytest.mark.asyncio
async def test_breach_flag_stays_set_after_resolve(ticket_service, evaluator, agent, clock):
    ticket = await ticket_service.create_ticket(agent, title="Late", description="x", priority="urgent")
    clock.advance(hours=5)
    assert [t.id for t in await evaluator.sweep()] == [ticket.id]

    resolved = await ticket_service.update_ticket(agent, ticket.id, 1, {"status": "resolved"})

    assert resolved.version == 2
    assert resolved.status == "resolved"
    assert resolved.sla_breached is True

    clock.advance(hours=1)
    assert await evaluator.sweep() == []
    stored = await ticket_service.get_ticket(agent, ticket.id)
    assert stored.version == 2
    assert stored.sla_breached is True


@pytest.mark.asyncio
async def test_reads_have_no_side_effects(ticket_service, agent, clock):
    ticket = await ticket_service.create_ticket(agent, title="Late", description="x", priority="urgent")
    clock.advance(hours=5)

    fetched = await ticket_service.get_ticket(agent, ticket.id)
    overdue = await ticket_service.list_sla_breached(agent)

    assert fetched.sla_breached is False
    assert [t.id for t in overdue] == [ticket.id]
    assert (await ticket_service.get_ticket(agent, ticket.id)).sla_breached is False


@pytest.mark.asyncio
async def test_sla_breached_listing_is_scoped(ticket_service, alice, bob, clock):
    mine = await ticket_service.create_ticket(alice, title="Mine", description="x", priority="urgent")
    await ticket_service.create_ticket(bob, title="Theirs", description="x", priority="urgent")
    clock.advance(hours=5)

    assert [t.id for t in await ticket_service.list_sla_breached(alice)] == [mine.id]


@pytest.mark.asyncio
async def test_concurrent_evaluators_flip_once(session, ticket_service, evaluator, agent, clock):
    ticket = await ticket_service.create_ticket(agent, title="Late", description="x", priority="urgent")
    clock.advance(hours=5)
    stale_copy = await SQLAlchemyTicketRepository(session).get_by_id(ticket.id)

    first = await evaluator.evaluate(stale_copy)
    second = await evaluator.evaluate(stale_copy)

    assert first.sla_breached and second.sla_breached
    assert pending_ids(evaluator) == [ticket.id]


@pytest.mark.asyncio
async def test_update_does_not_wait_for_alert_delivery(session, ticket_service, evaluator, agent, clock):
    notifier = GatedNotifier()
    alerts = BreachAlertDispatcher(notifier)
    alert_after_commit(session, evaluator, alerts)

    ticket = await ticket_service.create_ticket(agent, title="Late", description="x", priority="urgent")
    await session.commit()
    clock.advance(hours=5)

    updated = await asyncio.wait_for(
        ticket_service.update_ticket(agent, ticket.id, 1, {"status": "in_progress"}), timeout=1
    )
    assert updated.sla_breached
    assert alerts.in_flight == 0

    await asyncio.wait_for(session.commit(), timeout=1)
    assert alerts.in_flight == 1
    assert notifier.sent == []

    notifier.gate.set()
    await alerts.drain()
    assert notifier.sent == [ticket.id]
    assert alerts.in_flight == 0


@pytest.mark.asyncio
async def test_rolled_back_breach_is_not_announced(session, ticket_service, evaluator, agent, clock, notifier):
    alerts = BreachAlertDispatcher(notifier)
    alert_after_commit(session, evaluator, alerts)

    ticket = await ticket_service.create_ticket(agent, title="Late", description="x", priority="urgent")
    await session.commit()
    clock.advance(hours=5)
    await evaluator.sweep()

    await session.rollback()
    await alerts.drain()

    assert notifier.sent == []
    assert evaluator.take_pending() == []
    assert (await ticket_service.get_ticket(agent, ticket.id)).sla_breached is False


@pytest.mark.asyncio
async def test_failed_alerts_do_not_escape():
    class DownNotifier:
        async def notify_breach(self, ticket):
            return False

    class BrokenNotifier:
        async def notify_breach(self, ticket):
            raise RuntimeError("webhook misconfigured")

    class FakeTicket:
        id = 11

    for notifier in (DownNotifier(), BrokenNotifier()):
        alerts = BreachAlertDispatcher(notifier)
        alerts.dispatch([FakeTicket()])
        await alerts.drain()
        assert alerts.in_flight == 0
