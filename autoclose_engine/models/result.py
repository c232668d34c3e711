"""
Auto-Close Result Models

Transient outputs of a sweep or a preview. Never persisted.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .ticket import Ticket


class CloseOutcome(BaseModel):
    """Outcome of closing one ticket. success tracks the status write only."""
    success: bool
    error: Optional[str] = None


class CloseDetail(BaseModel):
    ticket_id: str
    ticket_number: str
    rule_name: str
    success: bool
    error: Optional[str] = None


class EngineResult(BaseModel):
    """
    Aggregate of one process() call.

    processed counts matches across all rules (a ticket matched by two
    rules counts twice), closed counts successful status transitions.
    """
    processed: int = 0
    closed: int = 0
    errors: List[str] = Field(default_factory=list)
    details: List[CloseDetail] = Field(default_factory=list)

    def merge(self, other: "EngineResult") -> None:
        self.processed += other.processed
        self.closed += other.closed
        self.errors.extend(other.errors)
        self.details.extend(other.details)

    @classmethod
    def fatal(cls, message: str) -> "EngineResult":
        return cls(errors=[message])


class RulePreview(BaseModel):
    rule_name: str
    ticket_count: int
    tickets: List[Ticket] = Field(default_factory=list)


class PreviewResult(BaseModel):
    rules: List[RulePreview] = Field(default_factory=list)
    total_tickets: int = 0
