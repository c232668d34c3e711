"""SQLite-backed helpdesk store.

Built on the standard library ``sqlite3`` module.
Implements both the ``TicketStore`` and ``RuleStore`` protocols on a single
database file, mirroring the production layout where rules live next to
tickets.

Usage:

    from autoclose_engine.store import SQLiteHelpdeskStore

    store = SQLiteHelpdeskStore("helpdesk.db")
    engine = AutoCloseEngine(ticket_store=store, rule_store=store)

Timestamps are stored as UTC epoch seconds (REAL) so ``updated_at <= cutoff``
is a plain numeric comparison.
"""

import asyncio
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from pydantic import ValidationError

from ..errors import RuleNotFoundError, StoreError
from ..models import AutoCloseRule, Notification, Ticket, TicketReply, TicketStatus

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS ticket_statuses (
    status_id INTEGER PRIMARY KEY,
    status_name TEXT NOT NULL,
    is_final INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS tickets (
    id TEXT PRIMARY KEY,
    ticket_number TEXT NOT NULL,
    subject TEXT,
    status_id INTEGER REFERENCES ticket_statuses(status_id),
    requester_id TEXT,
    assigned_to TEXT,
    updated_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_tickets_status_updated
    ON tickets (status_id, updated_at);
CREATE TABLE IF NOT EXISTS ticket_replies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ticket_id TEXT NOT NULL REFERENCES tickets(id),
    content TEXT NOT NULL,
    is_internal INTEGER NOT NULL,
    reply_type TEXT NOT NULL,
    created_at REAL NOT NULL
);
CREATE TABLE IF NOT EXISTS notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    type TEXT NOT NULL,
    reference_type TEXT NOT NULL,
    reference_id TEXT NOT NULL,
    is_read INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS auto_close_rules (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    condition_type TEXT NOT NULL,
    condition_value TEXT NOT NULL DEFAULT '',
    after_days INTEGER NOT NULL DEFAULT 0,
    after_hours INTEGER NOT NULL DEFAULT 0,
    notify_user INTEGER NOT NULL DEFAULT 0,
    notify_agent INTEGER NOT NULL DEFAULT 0,
    add_note INTEGER NOT NULL DEFAULT 0,
    note_text TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    tickets_closed INTEGER NOT NULL DEFAULT 0,
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL
);
"""

_TICKET_COLUMNS = "id, ticket_number, subject, status_id, requester_id, assigned_to, updated_at"


def _to_epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _from_epoch(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, timezone.utc)


def _validate(model: type, data: Dict[str, Any]) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise StoreError(f"Malformed {model.__name__} row: {e}") from e


class SQLiteHelpdeskStore:
    """SQLite-backed TicketStore + RuleStore.

    Uses WAL mode for concurrent reads. All operations run in a thread
    executor to avoid blocking the event loop; a lock serialises access
    to the shared connection.

    Args:
        db_path: Path to the SQLite database file. Use ``:memory:`` for
            testing (non-persistent).
    """

    def __init__(self, db_path: str | Path = "helpdesk.db"):
        self._db_path = str(db_path)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        self._mutex = threading.Lock()

    def close(self) -> None:
        self._conn.close()

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._guarded, fn, *args)

    def _guarded(self, fn: Callable[..., T], *args: Any) -> T:
        with self._mutex:
            try:
                return fn(*args)
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StoreError(str(e)) from e

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    def _row_to_ticket(self, row: sqlite3.Row) -> Ticket:
        d = dict(row)
        return _validate(Ticket, {
            "id": d["id"],
            "ticket_number": d["ticket_number"],
            "subject": d["subject"],
            "status_id": d["status_id"],
            "requester_id": d["requester_id"],
            "assigned_to_id": d["assigned_to"],
            "updated_at": _from_epoch(d["updated_at"]),
        })

    def _row_to_rule(self, row: sqlite3.Row) -> AutoCloseRule:
        d = dict(row)
        d["created_at"] = _from_epoch(d["created_at"])
        d["updated_at"] = _from_epoch(d["updated_at"])
        return _validate(AutoCloseRule, d)

    # -------------------------------------------------------------------------
    # Seeding (sync, used by setup scripts and tests)
    # -------------------------------------------------------------------------

    def add_status(self, status: TicketStatus) -> None:
        with self._mutex:
            self._conn.execute(
                "INSERT OR REPLACE INTO ticket_statuses (status_id, status_name, is_final) "
                "VALUES (?, ?, ?)",
                (status.status_id, status.status_name, int(status.is_final)),
            )
            self._conn.commit()

    def add_ticket(self, ticket: Ticket) -> None:
        with self._mutex:
            self._conn.execute(
                f"INSERT OR REPLACE INTO tickets ({_TICKET_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    ticket.id, ticket.ticket_number, ticket.subject, ticket.status_id,
                    ticket.requester_id, ticket.assigned_to_id, _to_epoch(ticket.updated_at),
                ),
            )
            self._conn.commit()

    # -------------------------------------------------------------------------
    # TicketStore
    # -------------------------------------------------------------------------

    async def get_final_statuses(self) -> List[TicketStatus]:
        return await self._run(self._get_final_statuses_sync)

    def _get_final_statuses_sync(self) -> List[TicketStatus]:
        cursor = self._conn.execute(
            "SELECT status_id, status_name, is_final FROM ticket_statuses "
            "WHERE is_final = 1 ORDER BY status_id"
        )
        return [_validate(TicketStatus, dict(row)) for row in cursor]

    async def find_status_ids_by_name(self, fragment: str) -> List[int]:
        return await self._run(self._find_status_ids_sync, fragment)

    def _find_status_ids_sync(self, fragment: str) -> List[int]:
        # LIKE is case-insensitive for ASCII in SQLite
        cursor = self._conn.execute(
            "SELECT status_id FROM ticket_statuses WHERE status_name LIKE ?",
            (f"%{fragment}%",),
        )
        return [row["status_id"] for row in cursor]

    async def find_stale_tickets(
        self,
        cutoff: datetime,
        status_ids: Optional[Sequence[int]] = None,
    ) -> List[Ticket]:
        return await self._run(self._find_stale_sync, cutoff, status_ids)

    def _find_stale_sync(
        self, cutoff: datetime, status_ids: Optional[Sequence[int]]
    ) -> List[Ticket]:
        sql = (
            "SELECT t.id, t.ticket_number, t.subject, t.status_id, t.requester_id, "
            "t.assigned_to, t.updated_at "
            "FROM tickets t JOIN ticket_statuses s ON s.status_id = t.status_id "
            "WHERE s.is_final = 0 AND t.updated_at <= ?"
        )
        params: List[Any] = [_to_epoch(cutoff)]
        if status_ids is not None:
            ids = list(status_ids)
            if not ids:
                return []
            sql += f" AND t.status_id IN ({', '.join('?' for _ in ids)})"
            params.extend(ids)
        sql += " ORDER BY t.updated_at"
        cursor = self._conn.execute(sql, params)
        return [self._row_to_ticket(row) for row in cursor]

    async def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        return await self._run(self._get_ticket_sync, ticket_id)

    def _get_ticket_sync(self, ticket_id: str) -> Optional[Ticket]:
        row = self._conn.execute(
            f"SELECT {_TICKET_COLUMNS} FROM tickets WHERE id = ?", (ticket_id,)
        ).fetchone()
        return self._row_to_ticket(row) if row else None

    async def set_ticket_status(
        self, ticket_id: str, status_id: int, updated_at: datetime
    ) -> None:
        await self._run(self._set_status_sync, ticket_id, status_id, updated_at)

    def _set_status_sync(self, ticket_id: str, status_id: int, updated_at: datetime) -> None:
        cursor = self._conn.execute(
            "UPDATE tickets SET status_id = ?, updated_at = ? WHERE id = ?",
            (status_id, _to_epoch(updated_at), ticket_id),
        )
        self._conn.commit()
        if cursor.rowcount == 0:
            raise StoreError(f"Ticket {ticket_id} not found")

    async def add_reply(self, reply: TicketReply) -> None:
        await self._run(self._add_reply_sync, reply)

    def _add_reply_sync(self, reply: TicketReply) -> None:
        self._conn.execute(
            "INSERT INTO ticket_replies (ticket_id, content, is_internal, reply_type, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                reply.ticket_id, reply.content, int(reply.is_internal),
                reply.reply_type, _to_epoch(reply.created_at),
            ),
        )
        self._conn.commit()

    async def add_notifications(self, notifications: Sequence[Notification]) -> None:
        await self._run(self._add_notifications_sync, list(notifications))

    def _add_notifications_sync(self, notifications: List[Notification]) -> None:
        self._conn.executemany(
            "INSERT INTO notifications "
            "(user_id, title, message, type, reference_type, reference_id, is_read) "
            "VALUES (:user_id, :title, :message, :type, :reference_type, :reference_id, :is_read)",
            [n.model_dump() for n in notifications],
        )
        self._conn.commit()

    # -------------------------------------------------------------------------
    # RuleStore
    # -------------------------------------------------------------------------

    async def list_rules(self, active_only: bool = False) -> List[AutoCloseRule]:
        return await self._run(self._list_rules_sync, active_only)

    def _list_rules_sync(self, active_only: bool) -> List[AutoCloseRule]:
        sql = "SELECT * FROM auto_close_rules"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY created_at, id"
        return [self._row_to_rule(row) for row in self._conn.execute(sql)]

    async def get_rule(self, rule_id: str) -> Optional[AutoCloseRule]:
        return await self._run(self._get_rule_sync, rule_id)

    def _get_rule_sync(self, rule_id: str) -> Optional[AutoCloseRule]:
        row = self._conn.execute(
            "SELECT * FROM auto_close_rules WHERE id = ?", (rule_id,)
        ).fetchone()
        return self._row_to_rule(row) if row else None

    async def save_rule(self, rule: AutoCloseRule) -> None:
        await self._run(self._save_rule_sync, rule)

    def _save_rule_sync(self, rule: AutoCloseRule) -> None:
        row = rule.model_dump(mode="python")
        row["condition_type"] = rule.condition_type.value
        row["created_at"] = _to_epoch(rule.created_at)
        row["updated_at"] = _to_epoch(rule.updated_at)
        self._conn.execute(
            """INSERT OR REPLACE INTO auto_close_rules
            (id, name, description, condition_type, condition_value, after_days,
             after_hours, notify_user, notify_agent, add_note, note_text, is_active,
             tickets_closed, created_at, updated_at)
            VALUES (:id, :name, :description, :condition_type, :condition_value,
                    :after_days, :after_hours, :notify_user, :notify_agent, :add_note,
                    :note_text, :is_active, :tickets_closed, :created_at, :updated_at)""",
            row,
        )
        self._conn.commit()

    async def set_rule_active(self, rule_id: str, is_active: bool) -> AutoCloseRule:
        rule = await self._run(self._set_active_sync, rule_id, is_active)
        if rule is None:
            raise RuleNotFoundError(f"Rule {rule_id} not found")
        return rule

    def _set_active_sync(self, rule_id: str, is_active: bool) -> Optional[AutoCloseRule]:
        cursor = self._conn.execute(
            "UPDATE auto_close_rules SET is_active = ? WHERE id = ?",
            (int(is_active), rule_id),
        )
        self._conn.commit()
        if cursor.rowcount == 0:
            return None
        return self._get_rule_sync(rule_id)

    async def increment_tickets_closed(
        self, rule_id: str, count: int, updated_at: datetime
    ) -> None:
        found = await self._run(self._increment_sync, rule_id, count, updated_at)
        if not found:
            raise RuleNotFoundError(f"Rule {rule_id} not found")

    def _increment_sync(self, rule_id: str, count: int, updated_at: datetime) -> bool:
        cursor = self._conn.execute(
            "UPDATE auto_close_rules "
            "SET tickets_closed = tickets_closed + ?, updated_at = ? WHERE id = ?",
            (count, _to_epoch(updated_at), rule_id),
        )
        self._conn.commit()
        return cursor.rowcount > 0
