"""Custom exceptions for TTS services."""

from swizz.errors import ExternalServiceError


class TTSServiceError(ExternalServiceError):
    """Base exception for TTS service errors."""

    pass


class TTSSynthesisError(TTSServiceError):
    """Raised when synthesis fails or returns no audio."""

    pass


class TTSConnectionError(TTSServiceError):
    """Raised when unable to reach ElevenLabs."""

    pass


class TTSResamplingError(TTSServiceError):
    """Raised when audio resampling fails."""

    pass
