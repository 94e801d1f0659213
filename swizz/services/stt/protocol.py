"""STT (Speech-to-Text) service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class TranscriptResult:
    """Best-effort transcript of one audio chunk."""

    text: str
    confidence: float = 0.0
    language: str | None = None
    latency_ms: float | None = None

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


class STTService(Protocol):
    """Protocol for STT (Speech-to-Text) service implementations."""

    async def transcribe(
        self,
        audio: bytes,
        *,
        mimetype: str = "audio/wav",
        language: str = "en",
    ) -> TranscriptResult:
        """Transcribe a complete audio container.

        Args:
            audio: Encoded audio (a WAV chunk from the frame buffer)
            mimetype: Container type passed to the provider
            language: Language hint

        Returns:
            TranscriptResult, possibly with blank text when nothing was heard
        """
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...

    async def health_check(self) -> bool:
        """Check if the service is operational."""
        ...
