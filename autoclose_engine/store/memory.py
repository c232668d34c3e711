"""In-memory stores. Reference implementations of the store protocols."""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..errors import RuleNotFoundError, StoreError
from ..models import AutoCloseRule, Notification, Ticket, TicketReply, TicketStatus


class InMemoryTicketStore:
    """In-memory ticket store guarded by an asyncio lock."""

    def __init__(
        self,
        statuses: Optional[Sequence[TicketStatus]] = None,
        tickets: Optional[Sequence[Ticket]] = None,
    ):
        self._statuses: Dict[int, TicketStatus] = {s.status_id: s for s in statuses or []}
        self._tickets: Dict[str, Ticket] = {t.id: t for t in tickets or []}
        self.replies: List[TicketReply] = []
        self.notifications: List[Notification] = []
        self._lock = asyncio.Lock()

    def add_status(self, status: TicketStatus) -> None:
        self._statuses[status.status_id] = status

    def add_ticket(self, ticket: Ticket) -> None:
        self._tickets[ticket.id] = ticket

    def _is_final(self, status_id: int) -> bool:
        status = self._statuses.get(status_id)
        return bool(status and status.is_final)

    async def get_final_statuses(self) -> List[TicketStatus]:
        async with self._lock:
            return [s for s in self._statuses.values() if s.is_final]

    async def find_status_ids_by_name(self, fragment: str) -> List[int]:
        needle = fragment.lower()
        async with self._lock:
            return [
                s.status_id for s in self._statuses.values()
                if needle in s.status_name.lower()
            ]

    async def find_stale_tickets(
        self,
        cutoff: datetime,
        status_ids: Optional[Sequence[int]] = None,
    ) -> List[Ticket]:
        wanted = set(status_ids) if status_ids is not None else None
        async with self._lock:
            return [
                t.model_copy()
                for t in self._tickets.values()
                if not self._is_final(t.status_id)
                and t.updated_at <= cutoff
                and (wanted is None or t.status_id in wanted)
            ]

    async def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        async with self._lock:
            ticket = self._tickets.get(ticket_id)
            return ticket.model_copy() if ticket else None

    async def set_ticket_status(
        self, ticket_id: str, status_id: int, updated_at: datetime
    ) -> None:
        async with self._lock:
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                raise StoreError(f"Ticket {ticket_id} not found")
            self._tickets[ticket_id] = ticket.model_copy(
                update={"status_id": status_id, "updated_at": updated_at}
            )

    async def add_reply(self, reply: TicketReply) -> None:
        async with self._lock:
            self.replies.append(reply)

    async def add_notifications(self, notifications: Sequence[Notification]) -> None:
        async with self._lock:
            self.notifications.extend(notifications)


class InMemoryRuleStore:
    """In-memory rule store. Insertion order is the processing order."""

    def __init__(self, rules: Optional[Sequence[AutoCloseRule]] = None):
        self._rules: Dict[str, AutoCloseRule] = {r.id: r for r in rules or []}
        self._lock = asyncio.Lock()

    async def list_rules(self, active_only: bool = False) -> List[AutoCloseRule]:
        async with self._lock:
            return [
                r.model_copy() for r in self._rules.values()
                if r.is_active or not active_only
            ]

    async def get_rule(self, rule_id: str) -> Optional[AutoCloseRule]:
        async with self._lock:
            rule = self._rules.get(rule_id)
            return rule.model_copy() if rule else None

    async def save_rule(self, rule: AutoCloseRule) -> None:
        async with self._lock:
            self._rules[rule.id] = rule.model_copy()

    async def set_rule_active(self, rule_id: str, is_active: bool) -> AutoCloseRule:
        async with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                raise RuleNotFoundError(f"Rule {rule_id} not found")
            rule = rule.model_copy(update={"is_active": is_active})
            self._rules[rule_id] = rule
            return rule.model_copy()

    async def increment_tickets_closed(
        self, rule_id: str, count: int, updated_at: datetime
    ) -> None:
        async with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                raise RuleNotFoundError(f"Rule {rule_id} not found")
            self._rules[rule_id] = rule.model_copy(update={
                "tickets_closed": rule.tickets_closed + count,
                "updated_at": updated_at,
            })
