"""
Auto-Close Rule Model

Rules are authored by administrators and read by the engine.
The only field the engine ever writes is the tickets_closed counter.
"""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field

from ..errors import InvalidRuleError
from .ticket import utcnow


# =============================================================================
# ENUMS
# =============================================================================

class ConditionType(str, Enum):
    STATUS = "status"                  # Ticket sits in one specific status
    PENDING = "pending"                # Ticket sits in any "pending" status
    NO_RESPONSE = "no_response"        # Ticket untouched since the cutoff
    USER_CONFIRMED = "user_confirmed"  # Closed by an explicit user action


# =============================================================================
# CONDITIONS
# =============================================================================

class StatusCondition(BaseModel):
    type: Literal["status"] = "status"
    status_id: int


class PendingCondition(BaseModel):
    type: Literal["pending"] = "pending"
    name_fragment: str = "pending"


class NoResponseCondition(BaseModel):
    """
    Approximated by time since last update.

    The ticket store carries no last-responder signal, so "no response
    from <party>" degrades to "stale since the cutoff".
    """
    type: Literal["no_response"] = "no_response"
    party: Optional[str] = None


class UserConfirmedCondition(BaseModel):
    """Never matched by the periodic scan."""
    type: Literal["user_confirmed"] = "user_confirmed"


RuleCondition = Union[
    StatusCondition,
    PendingCondition,
    NoResponseCondition,
    UserConfirmedCondition,
]


# =============================================================================
# RULE
# =============================================================================

class AutoCloseRule(BaseModel):
    """
    A named auto-close policy.

    Window: after_days + after_hours of inactivity.
    Side effects: optional internal note, optional requester/agent
    notifications.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    description: Optional[str] = None
    is_active: bool = True

    condition_type: ConditionType = ConditionType.STATUS
    condition_value: str = ""

    after_days: int = Field(default=3, ge=0)
    after_hours: int = Field(default=0, ge=0)

    notify_user: bool = True
    notify_agent: bool = False
    add_note: bool = False
    note_text: Optional[str] = None

    tickets_closed: int = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def condition(self) -> RuleCondition:
        """
        Interpret condition_type/condition_value as a typed condition.

        Raises InvalidRuleError for a status rule without an integer
        status id. Only surrounding whitespace is tolerated: "5.0" and
        "5 open" are rejected.
        """
        if self.condition_type == ConditionType.STATUS:
            try:
                status_id = int(self.condition_value.strip())
            except ValueError:
                raise InvalidRuleError(
                    f"Rule \"{self.name}\" has invalid status id "
                    f"{self.condition_value!r}"
                ) from None
            return StatusCondition(status_id=status_id)

        if self.condition_type == ConditionType.PENDING:
            return PendingCondition()

        if self.condition_type == ConditionType.NO_RESPONSE:
            return NoResponseCondition(party=self.condition_value or None)

        return UserConfirmedCondition()

    @property
    def wants_note(self) -> bool:
        return bool(self.add_note and self.note_text)

    @computed_field
    @property
    def window_label(self) -> str:
        """Inactivity window for display, e.g. "3 days 2 hours"."""
        parts = []
        if self.after_days > 0:
            parts.append(f"{self.after_days} day{'s' if self.after_days > 1 else ''}")
        if self.after_hours > 0:
            parts.append(f"{self.after_hours} hour{'s' if self.after_hours > 1 else ''}")
        return " ".join(parts) or "Immediately"
