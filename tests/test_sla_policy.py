from datetime import timedelta

import pytest

from helpdesk.config import Settings, TicketStatus
from helpdesk.core import ConfigurationException
from helpdesk.sla.domain import SLACalculator, SLAPolicy
from helpdesk.sla.infrastructure import SLAConfigProvider

from conftest import T0


@pytest.mark.parametrize("priority,hours", [
    ("urgent", 4),
    ("high", 4),
    ("medium", 12),
    ("low", 48),
    ("critical", 24),
    ("", 24),
])
def test_due_hours_by_priority(priority, hours):
    assert SLAPolicy().due_hours_for(priority) == hours


def test_compute_due_date_adds_hours_to_now():
    assert SLAPolicy().compute_due_date("urgent", T0) == T0 + timedelta(hours=4)
    assert SLAPolicy().compute_due_date("low", T0) == T0 + timedelta(hours=48)


def test_partial_override_keeps_other_defaults():
    policy = SLAPolicy(due_hours={"urgent": 1})
    assert policy.due_hours_for("urgent") == 1
    assert policy.due_hours_for("medium") == 12


def test_non_positive_hours_rejected():
    with pytest.raises(ValueError):
        SLAPolicy(due_hours={"low": 0})


def test_past_due_excludes_terminal_statuses():
    due = T0
    later = T0 + timedelta(minutes=1)
    assert SLACalculator.is_past_due(due, TicketStatus.OPEN, later)
    assert SLACalculator.is_past_due(due, TicketStatus.IN_PROGRESS, later)
    assert not SLACalculator.is_past_due(due, TicketStatus.RESOLVED, later)
    assert not SLACalculator.is_past_due(due, TicketStatus.CLOSED, later)
    assert not SLACalculator.is_past_due(due, TicketStatus.OPEN, due)


def test_should_flag_is_monotonic():
    later = T0 + timedelta(hours=1)
    assert SLACalculator.should_flag(T0, TicketStatus.OPEN, False, later)
    assert not SLACalculator.should_flag(T0, TicketStatus.OPEN, True, later)


def test_config_provider_reads_settings(tmp_path):
    settings = Settings(sla_hours_urgent=2, sla_default_hours=30, sla_config_path=tmp_path / "missing.yaml")
    policy = SLAConfigProvider(settings).get_policy()
    assert policy.due_hours_for("urgent") == 2
    assert policy.due_hours_for("high") == 4
    assert policy.due_hours_for("whatever") == 30


def test_config_provider_yaml_overrides_settings(tmp_path):
    path = tmp_path / "sla_config.yaml"
    path.write_text("due_hours:\n  low: 72\ndefault_hours: 10\n")
    policy = SLAConfigProvider(Settings(), config_path=path).get_policy()
    assert policy.due_hours_for("low") == 72
    assert policy.due_hours_for("urgent") == 4
    assert policy.default_hours == 10


def test_config_provider_rejects_bad_yaml_values(tmp_path):
    path = tmp_path / "sla_config.yaml"
    path.write_text("due_hours:\n  urgent: -1\n")
    with pytest.raises(ConfigurationException):
        SLAConfigProvider(Settings(), config_path=path)
