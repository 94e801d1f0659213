"""Mapping of provider call-status callbacks onto call statuses."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from swizz.db.models import CallStatus


@dataclass(frozen=True, slots=True)
class StatusUpdate:
    """Fields to write when a provider reports a call status."""

    status: CallStatus
    completed_at: datetime | None = None
    call_duration: int | None = None

    def fields(self) -> dict[str, Any]:
        """Extra columns to set alongside the status."""
        extra: dict[str, Any] = {}
        if self.completed_at is not None:
            extra["completed_at"] = self.completed_at
        if self.call_duration is not None:
            extra["call_duration"] = self.call_duration
        return extra


_IN_PROGRESS = frozenset({"ringing", "in-progress"})
_FAILED = frozenset({"failed", "busy", "no-answer"})


def map_provider_status(
    provider_status: str,
    duration: str | int | None = None,
    *,
    now: datetime | None = None,
) -> StatusUpdate | None:
    """Translate a provider status string into a status update.

    Returns None for statuses that do not change anything (queued,
    initiated, canceled and unknown values).
    """
    value = (provider_status or "").strip().lower()
    now = now or datetime.now(UTC)

    if value in _IN_PROGRESS:
        return StatusUpdate(status=CallStatus.calling)

    if value == "completed":
        return StatusUpdate(
            status=CallStatus.completed,
            completed_at=now,
            call_duration=_parse_duration(duration),
        )

    if value in _FAILED:
        return StatusUpdate(status=CallStatus.failed, completed_at=now)

    return None


def _parse_duration(duration: str | int | None) -> int | None:
    if duration is None or duration == "":
        return None
    try:
        seconds = int(duration)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None
