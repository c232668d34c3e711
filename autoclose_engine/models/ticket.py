"""
Auto-Close Ticket Models

The slice of the helpdesk ticket store the engine reads and writes.

Core principles:
1. Ticket store owns tickets; the engine only flips status + updated_at
2. Status terminality comes from reference data (is_final), never names
3. Notes and notifications are write-only records
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# REFERENCE DATA
# =============================================================================

class TicketStatus(BaseModel):
    """Row of the status reference table."""
    status_id: int
    status_name: str
    is_final: bool = False


# =============================================================================
# CORE MODELS
# =============================================================================

class Ticket(BaseModel):
    """
    A ticket as seen by the auto-close engine.

    id and status_id are mandatory; rows without them are rejected
    at the store boundary.
    """
    id: str
    ticket_number: str = Field(..., description="Human-readable number, e.g. INC-2024-001234")
    subject: Optional[str] = None

    status_id: int

    requester_id: Optional[str] = None
    assigned_to_id: Optional[str] = None

    updated_at: datetime

    @field_validator("updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # naive timestamps are UTC, as in the SQLite adapter
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class TicketReply(BaseModel):
    """
    Reply on a ticket thread.

    The engine only ever writes system-authored internal notes.
    """
    ticket_id: str
    content: str
    is_internal: bool = True
    reply_type: str = "system"  # system, agent, requester
    created_at: datetime = Field(default_factory=utcnow)


class Notification(BaseModel):
    """In-app notification record. Delivery happens elsewhere."""
    user_id: str
    title: str
    message: str
    type: str = "ticket_closed"
    reference_type: str = "ticket"
    reference_id: str
    is_read: bool = False
