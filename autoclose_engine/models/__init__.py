"""
Auto-Close Engine Models

Tickets + statuses (store slice), rules, and sweep results.
"""

from .ticket import (
    TicketStatus,
    Ticket,
    TicketReply,
    Notification,
)
from .rule import (
    ConditionType,
    StatusCondition,
    PendingCondition,
    NoResponseCondition,
    UserConfirmedCondition,
    RuleCondition,
    AutoCloseRule,
)
from .result import (
    CloseOutcome,
    CloseDetail,
    EngineResult,
    RulePreview,
    PreviewResult,
)

__all__ = [
    "TicketStatus", "Ticket", "TicketReply", "Notification",
    "ConditionType", "StatusCondition", "PendingCondition", "NoResponseCondition",
    "UserConfirmedCondition", "RuleCondition", "AutoCloseRule",
    "CloseOutcome", "CloseDetail", "EngineResult", "RulePreview", "PreviewResult",
]
