"""Call store used by the live media stream.

Each operation runs in its own short transaction. Transient database
errors are retried a bounded number of times before StoreError is raised.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from swizz.config import Settings
from swizz.db.models import Call, CallStatus, TranscriptionEntry, TranscriptSpeaker
from swizz.db.repositories.calls import AsyncCallRepository
from swizz.errors import StoreError
from swizz.logging_config import get_logger

logger: Any = get_logger(__name__)

T = TypeVar("T")


class CallStore:
    """Facade over AsyncCallRepository with per-operation sessions and retry."""

    def __init__(
        self,
        session_factory: Callable[[], Any],
        *,
        retry_attempts: int = 3,
        retry_delay: float = 0.05,
    ) -> None:
        self._session_factory = session_factory
        self._retry_attempts = max(1, retry_attempts)
        self._retry_delay = retry_delay

    @classmethod
    def from_settings(cls, settings: Settings, session_factory: Callable[[], Any]) -> CallStore:
        return cls(
            session_factory,
            retry_attempts=settings.store_retry_attempts,
            retry_delay=settings.store_retry_delay_seconds,
        )

    async def _run(
        self,
        operation: str,
        func: Callable[[AsyncCallRepository], Awaitable[T]],
    ) -> T:
        last_error: Exception | None = None

        for attempt in range(1, self._retry_attempts + 1):
            try:
                async with self._session_factory() as session:
                    try:
                        result = await func(AsyncCallRepository(session))
                        await session.commit()
                        return result
                    except Exception:
                        await session.rollback()
                        raise
            except IntegrityError as e:
                # Constraint violations will not succeed on retry
                logger.error(f"Call store {operation} rejected: {e.orig}")
                raise StoreError(f"{operation} rejected: {e.orig}") from e
            except SQLAlchemyError as e:
                last_error = e
                logger.warning(
                    f"Call store {operation} failed (attempt {attempt}/{self._retry_attempts}): {e}"
                )
                if attempt < self._retry_attempts:
                    await asyncio.sleep(self._retry_delay * attempt)

        raise StoreError(f"{operation} failed after {self._retry_attempts} attempts") from last_error

    async def create(self, call: Call) -> Call:
        return await self._run("create", lambda repo: repo.create(call))

    async def get(self, call_id: str) -> Call | None:
        return await self._run("get", lambda repo: repo.get_by_id(call_id))

    async def get_by_provider_sid(self, provider_call_sid: str) -> Call | None:
        return await self._run(
            "get_by_provider_sid",
            lambda repo: repo.get_by_provider_sid(provider_call_sid),
        )

    async def update(self, call_id: str, **fields: Any) -> bool:
        return await self._run("update", lambda repo: repo.update(call_id, **fields))

    async def transition_status(self, call_id: str, status: CallStatus, **fields: Any) -> bool:
        return await self._run(
            "transition_status",
            lambda repo: repo.transition_status(call_id, status, **fields),
        )

    async def increment_ai_responses(self, call_id: str) -> bool:
        return await self._run(
            "increment_ai_responses",
            lambda repo: repo.increment_ai_responses(call_id),
        )

    async def append_transcription(
        self,
        call_id: str,
        speaker: TranscriptSpeaker,
        text: str,
        timestamp: datetime | None = None,
    ) -> TranscriptionEntry:
        return await self._run(
            "append_transcription",
            lambda repo: repo.append_transcription(call_id, speaker, text, timestamp),
        )

    async def list_transcription(self, call_id: str) -> list[TranscriptionEntry]:
        return await self._run(
            "list_transcription",
            lambda repo: repo.list_transcription(call_id),
        )
