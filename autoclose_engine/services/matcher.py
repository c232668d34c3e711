"""
Auto-Close Rule Matcher

Finds the tickets a rule would close right now.

Every condition shares the same base filter:
- current status is not final
- updated_at <= cutoff(after_days, after_hours)

The condition narrows the status set (or, for user_confirmed, matches
nothing at all).
"""

import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Callable, List, Optional

from ..models import (
    AutoCloseRule,
    NoResponseCondition,
    PendingCondition,
    StatusCondition,
    Ticket,
)
from ..models.ticket import utcnow
from ..store.base import TicketStore
from .cutoff import cutoff

logger = logging.getLogger("autoclose_engine.matcher")


class RuleMatcher:
    """
    Evaluates one rule against the ticket store.

    Matching is read-only. A store failure for a rule is logged and
    reported as zero matches so the rest of the sweep carries on.
    """

    def __init__(
        self,
        ticket_store: TicketStore,
        timeout: float = 30.0,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.tickets = ticket_store
        self.timeout = timeout
        self.tz = tz
        self.clock = clock

    async def match(self, rule: AutoCloseRule) -> List[Ticket]:
        """Eligible tickets for a rule; [] on any failure."""
        try:
            condition = rule.condition()
            threshold = cutoff(rule.after_days, rule.after_hours, now=self.clock(), tz=self.tz)

            if isinstance(condition, StatusCondition):
                return await self._stale([condition.status_id], threshold)

            if isinstance(condition, PendingCondition):
                return await self._stale_pending(condition, threshold)

            if isinstance(condition, NoResponseCondition):
                return await self._stale(None, threshold)

            # user_confirmed closes through an explicit user action, not the scan
            return []

        except Exception:
            logger.exception("Error fetching tickets for rule \"%s\"", rule.name)
            return []

    async def _stale(
        self,
        status_ids: Optional[List[int]],
        threshold: datetime,
    ) -> List[Ticket]:
        return await asyncio.wait_for(
            self.tickets.find_stale_tickets(threshold, status_ids=status_ids),
            self.timeout,
        )

    async def _stale_pending(
        self,
        condition: PendingCondition,
        threshold: datetime,
    ) -> List[Ticket]:
        status_ids = await asyncio.wait_for(
            self.tickets.find_status_ids_by_name(condition.name_fragment),
            self.timeout,
        )
        if not status_ids:
            logger.info("No \"%s\" statuses defined; nothing to match", condition.name_fragment)
            return []
        return await self._stale(status_ids, threshold)
