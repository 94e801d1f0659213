"""Speech-to-Text services (Deepgram)."""

from swizz.services.stt.deepgram import DeepgramService
from swizz.services.stt.exceptions import STTConnectionError, STTServiceError
from swizz.services.stt.protocol import STTService, TranscriptResult

__all__ = [
    "DeepgramService",
    "STTConnectionError",
    "STTService",
    "STTServiceError",
    "TranscriptResult",
]
