"""Call session identity and per-call state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from swizz.core.conversation_state import ConversationState
from swizz.db.models import Call, CallStatus


@dataclass
class CallSession:
    """One delegated call while its media stream is open.

    Created when the stream connects, dropped when it closes.
    """

    call_id: str
    phone_number: str
    issue_description: str
    user_phone: str | None = None
    provider_call_sid: str | None = None
    stream_sid: str | None = None
    callback_requested: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    initial_status: CallStatus = CallStatus.calling
    conversation: ConversationState = field(init=False)

    def __post_init__(self) -> None:
        self.conversation = ConversationState.for_call(
            self.call_id,
            self.issue_description,
            status=self.initial_status,
        )

    @classmethod
    def from_call(cls, call: Call) -> CallSession:
        """Build a session from a stored call record."""
        session = cls(
            call_id=call.id,
            phone_number=call.phone_number,
            issue_description=call.issue_description,
            user_phone=call.user_phone,
            provider_call_sid=call.provider_call_sid,
            callback_requested=call.callback_requested,
            initial_status=call.status,
        )
        if call.human_detected_at is not None:
            session.conversation.mark_human_detected(call.human_detected_at)
        session.conversation.ai_responses_count = call.ai_responses_count
        return session

    @property
    def status(self) -> CallStatus:
        return self.conversation.status

    @property
    def duration_seconds(self) -> float:
        return (datetime.now(UTC) - self.started_at).total_seconds()
