"""Deepgram STT service using the prerecorded transcription API."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from swizz.config import Settings
from swizz.logging_config import get_logger
from swizz.services.stt.exceptions import STTConnectionError, STTServiceError
from swizz.services.stt.protocol import TranscriptResult

if TYPE_CHECKING:
    from deepgram import DeepgramClient

logger: Any = get_logger(__name__)


class DeepgramService:
    """Transcribes buffered call audio one chunk at a time.

    Each chunk is a short WAV file, so the prerecorded endpoint is used
    rather than a live socket.
    """

    def __init__(self, settings: Settings, model: str | None = None) -> None:
        self._settings = settings
        self._model = model or settings.deepgram_model
        self._client: DeepgramClient | None = None

    @property
    def client(self) -> DeepgramClient:
        """Lazy initialization of Deepgram client."""
        if self._client is None:
            from deepgram import DeepgramClient

            self._client = DeepgramClient(
                api_key=self._settings.deepgram_api_key.get_secret_value(),
            )
        return self._client

    async def transcribe(
        self,
        audio: bytes,
        *,
        mimetype: str = "audio/wav",
        language: str = "en",
    ) -> TranscriptResult:
        from deepgram import PrerecordedOptions

        options = PrerecordedOptions(
            model=self._model,
            language=language,
            smart_format=True,
            punctuate=True,
        )

        start_time = time.perf_counter()
        try:
            response = await asyncio.to_thread(
                self.client.listen.prerecorded.v("1").transcribe_file,
                {"buffer": audio, "mimetype": mimetype},
                options,
            )
        except (ConnectionError, TimeoutError) as e:
            logger.error(f"Deepgram unreachable: {e}")
            raise STTConnectionError(f"Deepgram unreachable: {e}") from e
        except Exception as e:
            logger.error(f"Deepgram transcription error: {e}")
            raise STTServiceError(f"Transcription failed: {e}") from e
        latency_ms = (time.perf_counter() - start_time) * 1000

        results = response.results
        channels = results.channels if results else []
        if not channels or not channels[0].alternatives:
            logger.debug("Deepgram returned no alternatives")
            return TranscriptResult(text="", language=language, latency_ms=latency_ms)

        best = channels[0].alternatives[0]
        confidence = best.confidence if hasattr(best, "confidence") else 0.0
        return TranscriptResult(
            text=best.transcript or "",
            confidence=confidence or 0.0,
            language=language,
            latency_ms=latency_ms,
        )

    async def close(self) -> None:
        """Close the Deepgram client."""
        self._client = None

    async def health_check(self) -> bool:
        """Check if Deepgram API is accessible."""
        try:
            _ = self.client
            return True
        except Exception as e:
            logger.error(f"Deepgram health check failed: {e}")
            return False
