"""Call and transcription repository.

Writes are single statements so concurrent writers never lose updates:
transcript lines are INSERTs, counters are incremented in SQL, and status
changes are compare-and-set on the current status.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from swizz.db.models import Call, CallStatus, TranscriptionEntry, TranscriptSpeaker

_IMMUTABLE_FIELDS = frozenset({"id", "status", "ai_responses_count", "created_at"})


class AsyncCallRepository:
    """Async repository for the media stream and HTTP handlers."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, call: Call) -> Call:
        self.session.add(call)
        await self.session.flush()
        return call

    async def get_by_id(self, call_id: str) -> Call | None:
        return await self.session.get(Call, call_id)

    async def get_by_provider_sid(self, provider_call_sid: str) -> Call | None:
        query = select(Call).where(Call.provider_call_sid == provider_call_sid)  # type: ignore[arg-type]
        result = await self.session.execute(query)
        return result.scalars().first()

    async def update(self, call_id: str, **fields: Any) -> bool:
        """Set plain fields on a call.

        Status and the response counter have dedicated methods and are
        rejected here.
        """
        blocked = _IMMUTABLE_FIELDS.intersection(fields)
        if blocked:
            raise ValueError(f"Use the dedicated method to change: {sorted(blocked)}")

        stmt = (
            update(Call)
            .where(Call.id == call_id)  # type: ignore[arg-type]
            .values(**fields, updated_at=datetime.now(UTC))
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    async def transition_status(
        self,
        call_id: str,
        status: CallStatus,
        **fields: Any,
    ) -> bool:
        """Move a call to status if its current status allows it.

        Returns False when the row is missing or already past the allowed
        sources (including terminal statuses and self-transitions).
        """
        sources = CallStatus.sources_for(status)
        if not sources:
            return False

        stmt = (
            update(Call)
            .where(
                Call.id == call_id,  # type: ignore[arg-type]
                Call.status.in_(sorted(sources)),  # type: ignore[attr-defined]
            )
            .values(status=status, updated_at=datetime.now(UTC), **fields)
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    async def increment_ai_responses(self, call_id: str) -> bool:
        stmt = (
            update(Call)
            .where(Call.id == call_id)  # type: ignore[arg-type]
            .values(
                ai_responses_count=Call.ai_responses_count + 1,
                updated_at=datetime.now(UTC),
            )
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    async def append_transcription(
        self,
        call_id: str,
        speaker: TranscriptSpeaker,
        text: str,
        timestamp: datetime | None = None,
    ) -> TranscriptionEntry:
        entry = TranscriptionEntry(
            call_id=call_id,
            speaker=speaker,
            text=text,
            timestamp=timestamp or datetime.now(UTC),
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_transcription(self, call_id: str) -> list[TranscriptionEntry]:
        query = (
            select(TranscriptionEntry)
            .where(TranscriptionEntry.call_id == call_id)  # type: ignore[arg-type]
            .order_by(TranscriptionEntry.id)  # type: ignore[arg-type]
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
