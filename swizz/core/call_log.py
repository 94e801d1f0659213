"""Transcription log and status notifier for one call.

Writes go to the call store. Store failures are logged and swallowed so a
database hiccup never ends a live call.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from swizz.core.conversation_state import ConversationState
from swizz.db.models import CallStatus, TranscriptSpeaker
from swizz.db.store import CallStore
from swizz.errors import StoreError
from swizz.logging_config import get_logger
from swizz.services.telephony.status import StatusUpdate

logger: Any = get_logger(__name__)

CALLBACK_STARTED_TEXT = "Callback initiated - calling user now"


class CallEventLog:
    """Appends transcript lines and status changes for a single call."""

    def __init__(self, store: CallStore, call_id: str) -> None:
        self._store = store
        self._call_id = call_id
        self._last_timestamp: datetime | None = None

    @property
    def call_id(self) -> str:
        return self._call_id

    def _next_timestamp(self) -> datetime:
        # Entries must never go back in time, even if the clock does
        now = datetime.now(UTC)
        if self._last_timestamp is not None and now < self._last_timestamp:
            now = self._last_timestamp
        self._last_timestamp = now
        return now

    async def append(self, speaker: TranscriptSpeaker, text: str) -> bool:
        """Append a transcript line. Returns False if the store rejected it."""
        try:
            await self._store.append_transcription(
                self._call_id, speaker, text, self._next_timestamp()
            )
        except StoreError as e:
            logger.error(f"Failed to append {speaker.value} line for call {self._call_id}: {e}")
            return False
        return True

    async def set_status(self, status: CallStatus, **fields: Any) -> bool:
        """Compare-and-set the stored status.

        Returns:
            True if the stored row moved to status
        """
        try:
            changed = await self._store.transition_status(self._call_id, status, **fields)
        except StoreError as e:
            logger.error(f"Failed to set status {status.value} for call {self._call_id}: {e}")
            return False

        if not changed:
            logger.debug(f"Stored status for call {self._call_id} not moved to {status.value}")
        return changed

    async def stored_status(self) -> CallStatus | None:
        """Status as the store sees it, or None when it cannot say."""
        try:
            call = await self._store.get(self._call_id)
        except StoreError as e:
            logger.error(f"Failed to read status for call {self._call_id}: {e}")
            return None
        return call.status if call is not None else None

    async def transition(
        self,
        conversation: ConversationState,
        status: CallStatus,
        **fields: Any,
    ) -> bool:
        """Move the stored status, then mirror the outcome in memory.

        When the store refuses the move, the in-memory status follows the
        stored one instead. When the store cannot be reached or holds no
        row for the call, the in-memory transition is applied on its own.

        Returns:
            True if the call moved to status
        """
        if await self.set_status(status, **fields):
            conversation.transition_to(status)
            return True

        stored = await self.stored_status()
        if stored is None:
            return conversation.transition_to(status)

        if stored != conversation.status and conversation.status.can_transition_to(stored):
            logger.info(
                f"Call {self._call_id} is {stored.value} in the store; "
                f"dropping local move to {status.value}"
            )
            conversation.transition_to(stored)
        return False

    async def update(self, **fields: Any) -> bool:
        try:
            return await self._store.update(self._call_id, **fields)
        except StoreError as e:
            logger.error(f"Failed to update call {self._call_id}: {e}")
            return False

    async def increment_ai_responses(self) -> bool:
        try:
            return await self._store.increment_ai_responses(self._call_id)
        except StoreError as e:
            logger.error(f"Failed to count AI response for call {self._call_id}: {e}")
            return False

    async def apply_provider_status(
        self,
        conversation: ConversationState,
        update: StatusUpdate,
        provider_status: str,
    ) -> bool:
        """Apply a mapped provider status and note it in the transcript."""
        changed = await self.transition(conversation, update.status, **update.fields())
        if changed:
            await self.append(TranscriptSpeaker.ai, f"Call status updated: {provider_status}")
        return changed

    async def request_callback(self, conversation: ConversationState) -> bool:
        """Mark the call as bridging back to the user."""
        changed = await self.transition(
            conversation, CallStatus.callback_in_progress, callback_requested=True
        )
        if changed:
            await self.append(TranscriptSpeaker.ai, CALLBACK_STARTED_TEXT)
        return changed
