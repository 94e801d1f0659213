"""SQLModel database models.

Two tables back the call store:
- calls: one row per delegated phone call
- transcription_entries: append-only transcript lines, ordered by id

CallStatus also carries the status transition graph so the core and the
repository enforce the same rules.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlmodel import Field, SQLModel

# =============================================================================
# Enums (shared across models)
# =============================================================================


class CallStatus(str, Enum):
    """Visible status of a delegated call."""

    calling = "calling"
    on_hold = "on_hold"
    connected_to_human = "connected_to_human"
    callback_in_progress = "callback_in_progress"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: CallStatus) -> bool:
        """Check whether target is a forward move from this status."""
        return target in ALLOWED_TRANSITIONS[self]

    @classmethod
    def sources_for(cls, target: CallStatus) -> frozenset[CallStatus]:
        """Statuses from which target may be entered."""
        return frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if target in targets)


class TranscriptSpeaker(str, Enum):
    """Who said a transcription line."""

    ai = "ai"
    human = "human"
    user = "user"


TERMINAL_STATUSES = frozenset({CallStatus.completed, CallStatus.failed})

_ENDINGS = frozenset({CallStatus.completed, CallStatus.failed})

ALLOWED_TRANSITIONS: dict[CallStatus, frozenset[CallStatus]] = {
    CallStatus.calling: frozenset({
        CallStatus.on_hold,
        CallStatus.connected_to_human,
        CallStatus.callback_in_progress,
    }) | _ENDINGS,
    CallStatus.on_hold: frozenset({
        CallStatus.connected_to_human,
        CallStatus.callback_in_progress,
    }) | _ENDINGS,
    CallStatus.connected_to_human: frozenset({CallStatus.callback_in_progress}) | _ENDINGS,
    CallStatus.callback_in_progress: _ENDINGS,
    CallStatus.completed: frozenset(),
    CallStatus.failed: frozenset(),
}


# =============================================================================
# Tables
# =============================================================================


class Call(SQLModel, table=True):
    """A phone call delegated to the agent."""

    __tablename__ = "calls"

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        primary_key=True,
        description="Unique identifier",
    )
    phone_number: str = Field(description="Number the agent dials")
    issue_description: str = Field(description="Why the user wants this call made")
    user_phone: str | None = Field(
        default=None, description="Number to alert when a human answers"
    )
    status: CallStatus = Field(default=CallStatus.calling, index=True)
    provider_call_sid: str | None = Field(
        default=None, index=True, description="Telephony provider call reference"
    )
    callback_requested: bool = Field(default=False)
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = Field(default=None)
    call_duration: int | None = Field(default=None, ge=0, description="Seconds")
    human_detected_at: datetime | None = Field(default=None)
    ai_responses_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class TranscriptionEntry(SQLModel, table=True):
    """One transcript line. Rows are only ever inserted."""

    __tablename__ = "transcription_entries"

    id: int | None = Field(default=None, primary_key=True)
    call_id: str = Field(foreign_key="calls.id", index=True)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    speaker: TranscriptSpeaker
    text: str
