"""
Cutoff calculation.

A rule's window (days + hours) maps to an absolute instant in the past.
Subtraction happens on the wall clock of the configured zone, so a
"3 days" window spans three calendar days even across a DST change.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def cutoff(
    days: int,
    hours: int,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> datetime:
    """
    Return "now minus days minus hours" as an aware UTC datetime.

    A ticket is eligible when updated_at <= cutoff. cutoff(0, 0) is now.
    Windows too large to represent clamp to EARLIEST.
    """
    zone = tz or timezone.utc
    if now is None:
        now = datetime.now(zone)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    try:
        local = now.astimezone(zone)
        shifted = local - timedelta(days=days) - timedelta(hours=hours)
        return shifted.astimezone(timezone.utc)
    except OverflowError:
        # window reaches past year 1: nothing can be older
        return EARLIEST
