"""
Auto-Close Scheduler

Recurring sweep: wait one interval, run process(), repeat.
The first sweep happens one interval after start().
"""

import asyncio
import logging
from typing import Optional

from ..models import EngineResult
from .engine import AutoCloseEngine

logger = logging.getLogger("autoclose_engine.scheduler")


class AutoCloseScheduler:
    """Runs AutoCloseEngine.process() every interval_seconds (hourly by default)."""

    def __init__(self, engine: AutoCloseEngine, interval_seconds: float = 3600.0):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self.last_result: Optional[EngineResult] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="autoclose-scheduler")
        logger.info("Auto-close scheduler started (every %.0fs)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Auto-close scheduler stopped")

    async def run_once(self) -> Optional[EngineResult]:
        """One sweep. A crash is logged; the schedule keeps going."""
        try:
            result = await self.engine.process()
        except Exception:
            logger.exception("Scheduled auto-close sweep failed")
            return None
        if result.errors:
            logger.warning(
                "Scheduled auto-close sweep finished with %d errors", len(result.errors)
            )
        self.last_result = result
        return result

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()
