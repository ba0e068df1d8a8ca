from datetime import timedelta

import pytest

from helpdesk.config import TicketStatus, UserRole
from helpdesk.tickets.domain import AccessPolicy, Ticket
from helpdesk.users.domain import Actor

from conftest import T0

OWNER = Actor(id=1, role=UserRole.USER)
STRANGER = Actor(id=2, role=UserRole.USER)
AGENT = Actor(id=3, role=UserRole.AGENT)
ADMIN = Actor(id=4, role=UserRole.ADMIN)


def make_ticket(status=TicketStatus.OPEN, created_by=OWNER.id):
    return Ticket(
        id=10,
        title="Printer on fire",
        description="It is literally on fire",
        status=status,
        priority="high",
        created_by=created_by,
        version=1,
        sla_due_date=T0 + timedelta(hours=4),
        sla_breached=False,
        created_at=T0,
        updated_at=T0,
    )


@pytest.mark.parametrize("actor,expected", [
    (OWNER, True),
    (STRANGER, False),
    (AGENT, True),
    (ADMIN, True),
])
def test_can_access(actor, expected):
    assert AccessPolicy.can_access(actor, make_ticket()) is expected


def test_owner_can_modify_only_while_open():
    assert AccessPolicy.can_modify(OWNER, make_ticket(TicketStatus.OPEN))
    assert not AccessPolicy.can_modify(OWNER, make_ticket(TicketStatus.IN_PROGRESS))
    assert not AccessPolicy.can_modify(OWNER, make_ticket(TicketStatus.RESOLVED))


def test_stranger_cannot_modify_open_ticket():
    assert not AccessPolicy.can_modify(STRANGER, make_ticket())


@pytest.mark.parametrize("status", [TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.CLOSED])
def test_staff_can_always_modify(status):
    assert AccessPolicy.can_modify(AGENT, make_ticket(status))
    assert AccessPolicy.can_modify(ADMIN, make_ticket(status))


def test_only_staff_can_assign():
    assert AccessPolicy.can_assign(AGENT)
    assert AccessPolicy.can_assign(ADMIN)
    assert not AccessPolicy.can_assign(OWNER)


def test_visible_creator_scopes_plain_users():
    assert AccessPolicy.visible_creator(OWNER) == OWNER.id
    assert AccessPolicy.visible_creator(AGENT) is None
