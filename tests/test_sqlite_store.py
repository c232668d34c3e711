from datetime import timedelta

import pytest

from autoclose_engine.config import EngineSettings
from autoclose_engine.errors import RuleNotFoundError, StoreError
from autoclose_engine.models import Notification, TicketReply
from autoclose_engine.services import AutoCloseEngine
from autoclose_engine.store import RuleStore, SQLiteHelpdeskStore, TicketStore

from conftest import CLOSED, NOW, OPEN, PENDING_CUSTOMER, PENDING_VENDOR, RESOLVED


@pytest.fixture
def store(statuses):
    store = SQLiteHelpdeskStore(":memory:")
    for status in statuses:
        store.add_status(status)
    yield store
    store.close()


def test_satisfies_both_protocols(store):
    assert isinstance(store, TicketStore)
    assert isinstance(store, RuleStore)


@pytest.mark.asyncio
async def test_final_statuses(store):
    finals = await store.get_final_statuses()
    assert [s.status_id for s in finals] == [CLOSED]


@pytest.mark.asyncio
async def test_status_lookup_is_case_insensitive(store):
    ids = await store.find_status_ids_by_name("pending")
    assert sorted(ids) == [PENDING_CUSTOMER, PENDING_VENDOR]


@pytest.mark.asyncio
async def test_find_stale_tickets(store, make_ticket):
    stale = make_ticket(status_id=RESOLVED, age=timedelta(days=4))
    boundary = make_ticket(status_id=OPEN, age=timedelta(days=3))
    store.add_ticket(stale)
    store.add_ticket(boundary)
    store.add_ticket(make_ticket(status_id=RESOLVED, age=timedelta(hours=2)))
    store.add_ticket(make_ticket(status_id=CLOSED, age=timedelta(days=30)))

    threshold = NOW - timedelta(days=3)

    everything = await store.find_stale_tickets(threshold)
    assert {t.id for t in everything} == {stale.id, boundary.id}

    resolved = await store.find_stale_tickets(threshold, status_ids=[RESOLVED])
    assert [t.id for t in resolved] == [stale.id]

    assert await store.find_stale_tickets(threshold, status_ids=[]) == []


@pytest.mark.asyncio
async def test_ticket_round_trip_keeps_timezone(store, make_ticket):
    ticket = make_ticket()
    store.add_ticket(ticket)

    loaded = await store.get_ticket(ticket.id)

    assert loaded == ticket
    assert loaded.updated_at.tzinfo is not None
    assert await store.get_ticket("missing") is None


@pytest.mark.asyncio
async def test_set_ticket_status(store, make_ticket):
    ticket = make_ticket()
    store.add_ticket(ticket)

    await store.set_ticket_status(ticket.id, CLOSED, NOW)

    loaded = await store.get_ticket(ticket.id)
    assert loaded.status_id == CLOSED
    assert loaded.updated_at == NOW

    with pytest.raises(StoreError):
        await store.set_ticket_status("missing", CLOSED, NOW)


@pytest.mark.asyncio
async def test_replies_and_notifications_are_written(store, make_ticket):
    ticket = make_ticket()
    store.add_ticket(ticket)

    await store.add_reply(TicketReply(ticket_id=ticket.id, content="auto-closed"))
    await store.add_notifications([
        Notification(user_id="user-1", title="t", message="m", reference_id=ticket.id),
        Notification(user_id="agent-1", title="t", message="m", reference_id=ticket.id),
    ])

    replies = store._conn.execute("SELECT * FROM ticket_replies").fetchall()
    notifications = store._conn.execute("SELECT * FROM notifications").fetchall()
    assert len(replies) == 1
    assert replies[0]["is_internal"] == 1
    assert replies[0]["reply_type"] == "system"
    assert sorted(n["user_id"] for n in notifications) == ["agent-1", "user-1"]


@pytest.mark.asyncio
async def test_malformed_ticket_row_fails_fast(store, make_ticket):
    ticket = make_ticket()
    store.add_ticket(ticket)
    store._conn.execute("UPDATE tickets SET status_id = NULL WHERE id = ?", (ticket.id,))

    with pytest.raises(StoreError):
        await store.get_ticket(ticket.id)


@pytest.mark.asyncio
async def test_rules_round_trip(store, make_rule):
    active = make_rule(
        name="Active", note_text="bye", add_note=True, created_at=NOW, updated_at=NOW
    )
    inactive = make_rule(
        name="Inactive", condition_type="pending", is_active=False,
        created_at=NOW, updated_at=NOW,
    )
    await store.save_rule(active)
    await store.save_rule(inactive)

    assert {r.name for r in await store.list_rules()} == {"Active", "Inactive"}
    assert [r.name for r in await store.list_rules(active_only=True)] == ["Active"]
    assert await store.get_rule(active.id) == active
    assert await store.get_rule("missing") is None


@pytest.mark.asyncio
async def test_rule_toggle_and_counter(store, make_rule):
    rule = make_rule(tickets_closed=4)
    await store.save_rule(rule)

    toggled = await store.set_rule_active(rule.id, False)
    assert toggled.is_active is False

    await store.increment_tickets_closed(rule.id, 3, NOW)
    stored = await store.get_rule(rule.id)
    assert stored.tickets_closed == 7
    assert stored.updated_at == NOW

    with pytest.raises(RuleNotFoundError):
        await store.set_rule_active("missing", True)
    with pytest.raises(RuleNotFoundError):
        await store.increment_tickets_closed("missing", 1, NOW)


@pytest.mark.asyncio
async def test_engine_sweep_on_sqlite(store, make_ticket, make_rule, clock):
    ticket = make_ticket(status_id=RESOLVED, age=timedelta(days=4))
    store.add_ticket(ticket)
    store.add_ticket(make_ticket(status_id=RESOLVED, age=timedelta(hours=1)))
    rule = make_rule(add_note=True, note_text="auto-closed", notify_user=True)
    await store.save_rule(rule)
    engine = AutoCloseEngine(store, store, settings=EngineSettings(), clock=clock)

    preview = await engine.preview()
    result = await engine.process()

    assert preview.total_tickets == 1
    assert (result.processed, result.closed, result.errors) == (1, 1, [])
    assert (await store.get_ticket(ticket.id)).status_id == CLOSED
    assert (await store.get_rule(rule.id)).tickets_closed == 1
    assert len(store._conn.execute("SELECT * FROM notifications").fetchall()) == 1
