from datetime import datetime, timedelta

import pytest

from autoclose_engine.errors import StoreError
from autoclose_engine.services import RuleMatcher, cutoff
from autoclose_engine.store import InMemoryTicketStore

from conftest import CLOSED, NOW, OPEN, PENDING_CUSTOMER, PENDING_VENDOR, RESOLVED


class FailingQueryStore(InMemoryTicketStore):
    async def find_stale_tickets(self, cutoff, status_ids=None):
        raise StoreError("connection reset")


class CountingStore(InMemoryTicketStore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = 0

    async def find_stale_tickets(self, cutoff, status_ids=None):
        self.calls += 1
        return await super().find_stale_tickets(cutoff, status_ids)

    async def find_status_ids_by_name(self, fragment):
        self.calls += 1
        return await super().find_status_ids_by_name(fragment)


@pytest.mark.asyncio
async def test_status_rule_matches_stale_ticket_in_status(ticket_store, make_ticket, make_rule, clock):
    stale = make_ticket(status_id=RESOLVED, age=timedelta(days=4))
    ticket_store.add_ticket(stale)
    ticket_store.add_ticket(make_ticket(status_id=OPEN, age=timedelta(days=4)))
    ticket_store.add_ticket(make_ticket(status_id=RESOLVED, age=timedelta(hours=1)))

    matcher = RuleMatcher(ticket_store, clock=clock)
    matches = await matcher.match(make_rule(condition_value=str(RESOLVED), after_days=3))

    assert [t.id for t in matches] == [stale.id]


@pytest.mark.asyncio
async def test_ticket_exactly_at_cutoff_is_eligible(ticket_store, make_ticket, make_rule, clock):
    ticket = make_ticket(status_id=RESOLVED, age=timedelta(days=3))
    ticket_store.add_ticket(ticket)

    matches = await RuleMatcher(ticket_store, clock=clock).match(make_rule(after_days=3))

    assert [t.id for t in matches] == [ticket.id]


@pytest.mark.asyncio
async def test_matches_respect_cutoff(ticket_store, make_ticket, make_rule, clock):
    for hours in (1, 20, 30, 50, 80):
        ticket_store.add_ticket(make_ticket(status_id=RESOLVED, age=timedelta(hours=hours)))

    rule = make_rule(after_days=1, after_hours=4)
    matches = await RuleMatcher(ticket_store, clock=clock).match(rule)

    threshold = cutoff(rule.after_days, rule.after_hours, now=NOW)
    assert len(matches) == 3
    assert all(t.updated_at <= threshold for t in matches)


@pytest.mark.asyncio
async def test_final_status_never_matched(ticket_store, make_ticket, make_rule, clock):
    ticket_store.add_ticket(make_ticket(status_id=CLOSED, age=timedelta(days=30)))
    matcher = RuleMatcher(ticket_store, clock=clock)

    for rule in (
        make_rule(condition_value=str(CLOSED)),
        make_rule(condition_type="no_response", condition_value="customer"),
        make_rule(condition_type="pending"),
    ):
        assert await matcher.match(rule) == []


@pytest.mark.asyncio
async def test_pending_rule_matches_any_pending_status(ticket_store, make_ticket, make_rule, clock):
    customer = make_ticket(status_id=PENDING_CUSTOMER)
    vendor = make_ticket(status_id=PENDING_VENDOR)
    ticket_store.add_ticket(customer)
    ticket_store.add_ticket(vendor)
    ticket_store.add_ticket(make_ticket(status_id=OPEN))

    matches = await RuleMatcher(ticket_store, clock=clock).match(
        make_rule(condition_type="pending", condition_value="")
    )

    assert {t.id for t in matches} == {customer.id, vendor.id}


@pytest.mark.asyncio
async def test_pending_rule_without_pending_statuses_matches_nothing(statuses, make_ticket, make_rule, clock):
    store = InMemoryTicketStore(statuses=[s for s in statuses if "pending" not in s.status_name.lower()])
    store.add_ticket(make_ticket(status_id=OPEN))

    matches = await RuleMatcher(store, clock=clock).match(make_rule(condition_type="pending"))

    assert matches == []


@pytest.mark.asyncio
async def test_no_response_rule_matches_any_stale_open_ticket(ticket_store, make_ticket, make_rule, clock):
    a = make_ticket(status_id=OPEN)
    b = make_ticket(status_id=RESOLVED)
    ticket_store.add_ticket(a)
    ticket_store.add_ticket(b)
    ticket_store.add_ticket(make_ticket(status_id=OPEN, age=timedelta(minutes=5)))

    matches = await RuleMatcher(ticket_store, clock=clock).match(
        make_rule(condition_type="no_response", condition_value="customer")
    )

    assert {t.id for t in matches} == {a.id, b.id}


@pytest.mark.asyncio
async def test_user_confirmed_never_matches_and_never_queries(statuses, make_ticket, make_rule, clock):
    store = CountingStore(statuses=statuses)
    for status_id in (OPEN, RESOLVED, PENDING_CUSTOMER):
        store.add_ticket(make_ticket(status_id=status_id, age=timedelta(days=365)))

    matcher = RuleMatcher(store, clock=clock)
    for days, hours in ((0, 0), (0, 1), (30, 0)):
        rule = make_rule(
            condition_type="user_confirmed",
            condition_value="true",
            after_days=days,
            after_hours=hours,
        )
        assert await matcher.match(rule) == []

    assert store.calls == 0


@pytest.mark.asyncio
async def test_store_failure_yields_no_matches(statuses, make_ticket, make_rule, clock, caplog):
    store = FailingQueryStore(statuses=statuses)
    store.add_ticket(make_ticket())

    matches = await RuleMatcher(store, clock=clock).match(make_rule(name="Broken"))

    assert matches == []
    assert "Broken" in caplog.text


@pytest.mark.asyncio
async def test_invalid_status_value_yields_no_matches(ticket_store, make_ticket, make_rule, clock):
    ticket_store.add_ticket(make_ticket())

    matches = await RuleMatcher(ticket_store, clock=clock).match(
        make_rule(condition_value="Resolved")
    )

    assert matches == []


@pytest.mark.asyncio
async def test_naive_timestamp_does_not_disable_rule(ticket_store, make_ticket, make_rule, clock):
    naive = make_ticket(status_id=RESOLVED, updated_at=datetime(2024, 3, 1, 12, 0))
    aware = make_ticket(status_id=RESOLVED, age=timedelta(days=4))
    ticket_store.add_ticket(naive)
    ticket_store.add_ticket(aware)

    matches = await RuleMatcher(ticket_store, clock=clock).match(make_rule(after_days=3))

    assert {t.id for t in matches} == {naive.id, aware.id}


@pytest.mark.asyncio
async def test_oversized_window_matches_nothing(ticket_store, make_ticket, make_rule, clock, caplog):
    ticket_store.add_ticket(make_ticket(status_id=RESOLVED, age=timedelta(days=4000)))

    matches = await RuleMatcher(ticket_store, clock=clock).match(make_rule(after_days=800_000))

    assert matches == []
    assert "Error fetching tickets" not in caplog.text
