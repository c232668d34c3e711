"""
Auto-Close Rule Processor

Runs matcher + closer for each active rule and folds the outcomes into
one EngineResult.

Concurrency:
- Rules run under a semaphore (default 1 = one rule at a time)
- Closes within a rule run under a second semaphore
- Each rule builds its own partial result; partials are merged in rule
  order once every rule is done
- The rule counter is bumped once per rule, from the final count
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Sequence, Tuple

from ..models import AutoCloseRule, CloseDetail, CloseOutcome, EngineResult, Ticket
from ..models.ticket import utcnow
from ..store.base import RuleStore
from .closer import TicketCloser
from .matcher import RuleMatcher

logger = logging.getLogger("autoclose_engine.processor")


class RuleProcessor:
    def __init__(
        self,
        matcher: RuleMatcher,
        closer: TicketCloser,
        rule_store: RuleStore,
        max_concurrent_rules: int = 1,
        max_concurrent_closes: int = 1,
        counter_mode: str = "closed",
        timeout: float = 30.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.matcher = matcher
        self.closer = closer
        self.rules = rule_store
        self.max_concurrent_rules = max_concurrent_rules
        self.max_concurrent_closes = max_concurrent_closes
        self.counter_mode = counter_mode
        self.timeout = timeout
        self.clock = clock

    async def run(
        self,
        rules: Sequence[AutoCloseRule],
        closed_status_id: int,
    ) -> EngineResult:
        """
        Process every active rule in the given order.

        Never raises for rule- or ticket-level failures; they end up in
        result.errors (failed closes) or in the log (everything else).
        """
        result = EngineResult()
        active = [rule for rule in rules if rule.is_active]
        gate = asyncio.Semaphore(self.max_concurrent_rules)

        async def bounded(rule: AutoCloseRule) -> EngineResult:
            async with gate:
                return await self._run_rule(rule, closed_status_id)

        partials = await asyncio.gather(*(bounded(rule) for rule in active))
        for partial in partials:
            result.merge(partial)
        return result

    async def _run_rule(self, rule: AutoCloseRule, closed_status_id: int) -> EngineResult:
        logger.info("Processing rule: %s", rule.name)
        partial = EngineResult()

        tickets = await self.matcher.match(rule)
        partial.processed = len(tickets)
        logger.info("Found %d tickets matching rule \"%s\"", len(tickets), rule.name)

        gate = asyncio.Semaphore(self.max_concurrent_closes)

        async def close_one(ticket: Ticket) -> Tuple[Ticket, CloseOutcome]:
            async with gate:
                return ticket, await self.closer.close(ticket.id, rule, closed_status_id)

        outcomes: List[Tuple[Ticket, CloseOutcome]] = await asyncio.gather(
            *(close_one(ticket) for ticket in tickets)
        )

        for ticket, outcome in outcomes:
            partial.details.append(CloseDetail(
                ticket_id=ticket.id,
                ticket_number=ticket.ticket_number,
                rule_name=rule.name,
                success=outcome.success,
                error=outcome.error,
            ))
            if outcome.success:
                partial.closed += 1
            else:
                partial.errors.append(
                    f"Failed to close {ticket.ticket_number}: {outcome.error}"
                )

        if tickets:
            count = partial.closed if self.counter_mode == "closed" else len(tickets)
            await self._record_stats(rule, count)

        return partial

    async def _record_stats(self, rule: AutoCloseRule, count: int) -> None:
        try:
            await asyncio.wait_for(
                self.rules.increment_tickets_closed(rule.id, count, self.clock()),
                self.timeout,
            )
        except Exception:
            logger.exception("Could not update statistics for rule \"%s\"", rule.name)
