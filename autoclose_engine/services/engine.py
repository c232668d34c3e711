"""
Auto-Close Engine

The two entry points callers use:
- process(): the real sweep (hourly schedule or "Run Now")
- preview(): dry run showing what a sweep would close

Plus the small rule-admin surface the operator screen needs
(list rules, toggle a rule on/off).
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..config import EngineSettings
from ..models import AutoCloseRule, EngineResult, PreviewResult, RulePreview
from ..models.ticket import utcnow
from ..store import InMemoryRuleStore, InMemoryTicketStore, SQLiteHelpdeskStore
from ..store.base import RuleStore, TicketStore
from .closer import TicketCloser
from .matcher import RuleMatcher
from .processor import RuleProcessor

logger = logging.getLogger("autoclose_engine.engine")

CLOSED_STATUS_MISSING = "Could not find closed status in database"


class AutoCloseEngine:
    """
    Facade over matcher, closer and processor.

    Fatal preconditions (no final status, rule list unreadable) end a
    sweep early with a single error. Everything else is collected into
    the result; process() never raises for data problems.

    Overlapping process() calls are serialised by a lock, so a manual
    run during the scheduled sweep waits for it instead of racing it.
    """

    def __init__(
        self,
        ticket_store: TicketStore,
        rule_store: RuleStore,
        settings: Optional[EngineSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or EngineSettings()
        self.tickets = ticket_store
        self.rules = rule_store
        self.timeout = self.settings.store_timeout_seconds

        self.matcher = RuleMatcher(
            ticket_store,
            timeout=self.timeout,
            tz=self.settings.tzinfo,
            clock=clock,
        )
        self.closer = TicketCloser(ticket_store, timeout=self.timeout, clock=clock)
        self.processor = RuleProcessor(
            self.matcher,
            self.closer,
            rule_store,
            max_concurrent_rules=self.settings.max_concurrent_rules,
            max_concurrent_closes=self.settings.max_concurrent_closes,
            counter_mode=self.settings.counter_mode,
            timeout=self.timeout,
            clock=clock,
        )
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "AutoCloseEngine":
        """SQLite store when database_path is set, empty in-memory stores otherwise."""
        if settings.database_path:
            store = SQLiteHelpdeskStore(settings.database_path)
            return cls(store, store, settings=settings)
        return cls(InMemoryTicketStore(), InMemoryRuleStore(), settings=settings)

    # =========================================================================
    # SWEEP
    # =========================================================================

    async def process(self) -> EngineResult:
        """Close every ticket matched by an active rule."""
        async with self._lock:
            return await self._process()

    async def _process(self) -> EngineResult:
        closed_status_id = await self._closed_status_id()
        if closed_status_id is None:
            return EngineResult.fatal(CLOSED_STATUS_MISSING)

        try:
            rules = await self._active_rules()
        except Exception as e:
            logger.exception("Error fetching auto-close rules")
            return EngineResult.fatal(f"Error fetching rules: {e}")

        if not rules:
            logger.info("No active auto-close rules found")
            return EngineResult()

        logger.info("Processing %d auto-close rules...", len(rules))
        result = await self.processor.run(rules, closed_status_id)
        logger.info(
            "Auto-close complete: Processed %d, Closed %d",
            result.processed, result.closed,
        )
        return result

    async def _closed_status_id(self) -> Optional[int]:
        try:
            statuses = await asyncio.wait_for(self.tickets.get_final_statuses(), self.timeout)
        except Exception:
            logger.exception("Error fetching final ticket statuses")
            return None
        if not statuses:
            logger.error(CLOSED_STATUS_MISSING)
            return None
        return statuses[0].status_id

    async def _active_rules(self) -> List[AutoCloseRule]:
        return await asyncio.wait_for(self.rules.list_rules(active_only=True), self.timeout)

    # =========================================================================
    # DRY RUN
    # =========================================================================

    async def preview(self) -> PreviewResult:
        """
        Match-only pass over active rules.

        No writes, no counters. Shows up to preview_limit sample tickets
        per rule so an operator can check the blast radius first.
        """
        preview = PreviewResult()
        try:
            rules = await self._active_rules()
        except Exception:
            logger.exception("Error in auto-close preview")
            return preview

        limit = self.settings.preview_limit
        for rule in rules:
            tickets = await self.matcher.match(rule)
            preview.rules.append(RulePreview(
                rule_name=rule.name,
                ticket_count=len(tickets),
                tickets=tickets[:limit],
            ))
            preview.total_tickets += len(tickets)
        return preview

    # =========================================================================
    # RULE ADMIN
    # =========================================================================

    async def list_rules(self) -> List[AutoCloseRule]:
        return await asyncio.wait_for(self.rules.list_rules(), self.timeout)

    async def set_rule_active(self, rule_id: str, is_active: bool) -> AutoCloseRule:
        """Raises RuleNotFoundError for an unknown id."""
        rule = await asyncio.wait_for(
            self.rules.set_rule_active(rule_id, is_active),
            self.timeout,
        )
        logger.info("Rule \"%s\" %s", rule.name, "enabled" if is_active else "disabled")
        return rule
