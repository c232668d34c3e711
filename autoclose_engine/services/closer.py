"""
Auto-Close Ticket Closer

Closing a ticket is three ordered steps:
1. Status transition (mandatory, decides the outcome)
2. Internal system note (best-effort)
3. Requester/agent notifications (best-effort)

Once step 1 succeeds the ticket IS closed. Failures in steps 2-3 are
logged and never revert or fail the close.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List

from ..models import AutoCloseRule, CloseOutcome, Notification, TicketReply
from ..models.ticket import utcnow
from ..store.base import TicketStore

logger = logging.getLogger("autoclose_engine.closer")

NOTIFICATION_TITLE = "Ticket Auto-Closed"


class TicketCloser:
    """
    Executes the closing transaction for one ticket.

    The status write is idempotent: closing an already-closed ticket
    rewrites the same status. Notes and notifications are not
    deduplicated across runs.
    """

    def __init__(
        self,
        ticket_store: TicketStore,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.tickets = ticket_store
        self.timeout = timeout
        self.clock = clock

    async def close(
        self,
        ticket_id: str,
        rule: AutoCloseRule,
        closed_status_id: int,
    ) -> CloseOutcome:
        try:
            await asyncio.wait_for(
                self.tickets.set_ticket_status(ticket_id, closed_status_id, self.clock()),
                self.timeout,
            )
        except Exception as e:
            logger.warning("Status update failed for ticket %s: %r", ticket_id, e)
            return CloseOutcome(success=False, error=str(e) or type(e).__name__)

        if rule.wants_note:
            await self._add_note(ticket_id, rule)

        if rule.notify_user or rule.notify_agent:
            await self._notify(ticket_id, rule)

        return CloseOutcome(success=True)

    async def _add_note(self, ticket_id: str, rule: AutoCloseRule) -> None:
        try:
            await asyncio.wait_for(
                self.tickets.add_reply(TicketReply(
                    ticket_id=ticket_id,
                    content=rule.note_text,
                    is_internal=True,
                    reply_type="system",
                    created_at=self.clock(),
                )),
                self.timeout,
            )
        except Exception:
            logger.exception("Could not add auto-close note to ticket %s", ticket_id)

    async def _notify(self, ticket_id: str, rule: AutoCloseRule) -> None:
        try:
            ticket = await asyncio.wait_for(self.tickets.get_ticket(ticket_id), self.timeout)
            if ticket is None:
                logger.warning("Ticket %s vanished before notifications were sent", ticket_id)
                return

            notifications: List[Notification] = []

            if rule.notify_user and ticket.requester_id:
                notifications.append(Notification(
                    user_id=ticket.requester_id,
                    title=NOTIFICATION_TITLE,
                    message=(
                        f"Ticket {ticket.ticket_number} has been automatically "
                        f"closed due to inactivity."
                    ),
                    reference_id=ticket_id,
                ))

            if rule.notify_agent and ticket.assigned_to_id:
                notifications.append(Notification(
                    user_id=ticket.assigned_to_id,
                    title=NOTIFICATION_TITLE,
                    message=(
                        f"Ticket {ticket.ticket_number} has been automatically "
                        f"closed by rule \"{rule.name}\"."
                    ),
                    reference_id=ticket_id,
                ))

            if notifications:
                await asyncio.wait_for(
                    self.tickets.add_notifications(notifications),
                    self.timeout,
                )
        except Exception:
            logger.exception("Could not send auto-close notifications for ticket %s", ticket_id)
