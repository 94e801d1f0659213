"""TTS (Text-to-Speech) service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass
class SynthesisMetadata:
    """Metadata collected during synthesis."""

    model: str = ""
    voice: str = ""
    input_chars: int = 0
    output_samples: int = 0
    output_duration_ms: float = 0.0
    total_synthesis_ms: float | None = None
    resampled: bool = False
    source_sample_rate: int = 0


class TTSService(Protocol):
    """Protocol for TTS (Text-to-Speech) service implementations."""

    async def synthesize(
        self,
        text: str,
        *,
        target_sample_rate: int = 8000,
    ) -> tuple[bytes, SynthesisMetadata]:
        """Synthesize text to a complete 16-bit mono PCM buffer.

        Returns:
            Tuple of (PCM bytes at target_sample_rate, metadata)
        """
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...

    async def health_check(self) -> bool:
        """Check if the service is operational."""
        ...
