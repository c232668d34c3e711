from datetime import datetime, timedelta, timezone

import pytest

from autoclose_engine.models import AutoCloseRule, Ticket, TicketStatus
from autoclose_engine.store import InMemoryRuleStore, InMemoryTicketStore

NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)

OPEN = 1
RESOLVED = 5
PENDING_CUSTOMER = 6
PENDING_VENDOR = 7
CLOSED = 9


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def statuses():
    return [
        TicketStatus(status_id=OPEN, status_name="Open"),
        TicketStatus(status_id=RESOLVED, status_name="Resolved"),
        TicketStatus(status_id=PENDING_CUSTOMER, status_name="Pending Customer"),
        TicketStatus(status_id=PENDING_VENDOR, status_name="PENDING vendor"),
        TicketStatus(status_id=CLOSED, status_name="Closed", is_final=True),
    ]


@pytest.fixture
def make_ticket():
    counter = {"n": 0}

    def _make(status_id=RESOLVED, age=timedelta(days=4), **overrides):
        counter["n"] += 1
        fields = {
            "id": f"t-{counter['n']}",
            "ticket_number": f"INC-2024-{counter['n']:06d}",
            "subject": "Printer on fire",
            "status_id": status_id,
            "requester_id": "user-1",
            "assigned_to_id": "agent-1",
            "updated_at": NOW - age,
        }
        fields.update(overrides)
        return Ticket(**fields)

    return _make


@pytest.fixture
def make_rule():
    def _make(**overrides):
        fields = {
            "name": "Resolved Auto-Close",
            "condition_type": "status",
            "condition_value": str(RESOLVED),
            "after_days": 3,
            "after_hours": 0,
            "notify_user": False,
            "notify_agent": False,
            "add_note": False,
        }
        fields.update(overrides)
        return AutoCloseRule(**fields)

    return _make


@pytest.fixture
def ticket_store(statuses):
    return InMemoryTicketStore(statuses=statuses)


@pytest.fixture
def rule_store():
    return InMemoryRuleStore()
