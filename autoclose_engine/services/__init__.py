"""
Auto-Close Engine Services

Cutoff -> Matcher -> Closer -> Processor -> Engine facade,
plus the hourly scheduler.
"""

from .cutoff import cutoff
from .matcher import RuleMatcher
from .closer import TicketCloser
from .processor import RuleProcessor
from .engine import AutoCloseEngine, CLOSED_STATUS_MISSING
from .scheduler import AutoCloseScheduler

__all__ = [
    # Time windows
    "cutoff",

    # Matching + closing
    "RuleMatcher", "TicketCloser",

    # Sweep
    "RuleProcessor", "AutoCloseEngine", "CLOSED_STATUS_MISSING",

    # Hourly trigger
    "AutoCloseScheduler",
]
