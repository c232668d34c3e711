"""Store protocols for the auto-close engine.

The engine never talks to a database directly. It needs two collaborators,
usually backed by the same database:

  - TicketStore: statuses, tickets, replies, notifications
  - RuleStore: auto-close rule records and their running counters

All methods are async. Implementations raise ``StoreError`` for any backend
failure and validate rows into models at their boundary, so the services
only ever see well-formed ``Ticket``/``AutoCloseRule`` objects.
"""

from datetime import datetime
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from ..models import AutoCloseRule, Notification, Ticket, TicketReply, TicketStatus


@runtime_checkable
class TicketStore(Protocol):
    async def get_final_statuses(self) -> List[TicketStatus]: ...

    async def find_status_ids_by_name(self, fragment: str) -> List[int]:
        """Status ids whose name contains ``fragment``, case-insensitive."""
        ...

    async def find_stale_tickets(
        self,
        cutoff: datetime,
        status_ids: Optional[Sequence[int]] = None,
    ) -> List[Ticket]:
        """Non-final tickets with ``updated_at <= cutoff``, optionally filtered by status."""
        ...

    async def get_ticket(self, ticket_id: str) -> Optional[Ticket]: ...

    async def set_ticket_status(
        self, ticket_id: str, status_id: int, updated_at: datetime
    ) -> None: ...

    async def add_reply(self, reply: TicketReply) -> None: ...

    async def add_notifications(self, notifications: Sequence[Notification]) -> None: ...


@runtime_checkable
class RuleStore(Protocol):
    async def list_rules(self, active_only: bool = False) -> List[AutoCloseRule]: ...

    async def get_rule(self, rule_id: str) -> Optional[AutoCloseRule]: ...

    async def save_rule(self, rule: AutoCloseRule) -> None: ...

    async def set_rule_active(self, rule_id: str, is_active: bool) -> AutoCloseRule:
        """Raises RuleNotFoundError for an unknown id."""
        ...

    async def increment_tickets_closed(
        self, rule_id: str, count: int, updated_at: datetime
    ) -> None:
        """Single atomic ``tickets_closed += count`` plus timestamp bump."""
        ...
