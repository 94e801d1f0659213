"""Per-call conversation state.

Holds the ordered turn history fed to the reply model, the visible call
status, and the human-detection latch. Only the owning session mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from swizz.db.models import CallStatus, TranscriptSpeaker
from swizz.logging_config import get_logger
from swizz.prompts.agent import build_system_prompt
from swizz.services.llm.protocol import Message, Role

logger: Any = get_logger(__name__)

# Conversation role -> transcript speaker
SPEAKER_FOR_ROLE = {
    Role.USER: TranscriptSpeaker.human,
    Role.ASSISTANT: TranscriptSpeaker.ai,
}


@dataclass
class ConversationState:
    """Tracks status, detection and history for one call."""

    call_id: str
    status: CallStatus = CallStatus.calling
    human_detected: bool = False
    human_detected_at: datetime | None = None
    ai_responses_count: int = 0
    _turns: list[Message] = field(default_factory=list, repr=False)

    @classmethod
    def for_call(
        cls,
        call_id: str,
        call_reason: str,
        *,
        status: CallStatus = CallStatus.calling,
        human_detected_at: datetime | None = None,
    ) -> ConversationState:
        """Start a conversation whose first turn is the system instruction."""
        state = cls(
            call_id=call_id,
            status=status,
            human_detected=human_detected_at is not None,
            human_detected_at=human_detected_at,
        )
        state._turns.append(Message(role=Role.SYSTEM, content=build_system_prompt(call_reason)))
        return state

    @property
    def history(self) -> list[Message]:
        """Copy of the turns in append order."""
        return list(self._turns)

    @property
    def turn_count(self) -> int:
        return len(self._turns)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition_to(self, target: CallStatus) -> bool:
        """Move to target if the status graph allows it.

        Re-asserting the current status is a silent no-op. Leaving a
        terminal status or moving backwards is logged and ignored.

        Returns:
            True if the status changed
        """
        if target == self.status:
            return False

        if self.status.is_terminal:
            logger.warning(
                f"Call {self.call_id} is {self.status.value}; ignoring transition to {target.value}"
            )
            return False

        if not self.status.can_transition_to(target):
            logger.warning(
                f"Call {self.call_id}: invalid transition {self.status.value} -> {target.value}"
            )
            return False

        logger.info(f"Call {self.call_id}: {self.status.value} -> {target.value}")
        self.status = target
        return True

    def mark_human_detected(self, at: datetime | None = None) -> bool:
        """Latch human detection.

        Returns:
            True only the first time
        """
        if self.human_detected:
            return False
        self.human_detected = True
        self.human_detected_at = at or datetime.now(UTC)
        return True

    def add_user_turn(self, text: str) -> Message:
        message = Message(role=Role.USER, content=text)
        self._turns.append(message)
        return message

    def add_assistant_turn(self, text: str) -> Message:
        message = Message(role=Role.ASSISTANT, content=text)
        self._turns.append(message)
        self.ai_responses_count += 1
        return message

    def get_transcript(self, last: int | None = None) -> str:
        """Readable transcript of the spoken turns (system instruction excluded)."""
        spoken = [t for t in self._turns if t.role != Role.SYSTEM]
        if last is not None:
            spoken = spoken[-last:]
        return "\n".join(f"{SPEAKER_FOR_ROLE[t.role].value}: {t.content}" for t in spoken)
