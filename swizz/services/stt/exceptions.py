"""Custom exceptions for STT services."""

from swizz.errors import ExternalServiceError


class STTServiceError(ExternalServiceError):
    """Base exception for STT service errors."""

    pass


class STTConnectionError(STTServiceError):
    """Raised when Deepgram cannot be reached."""

    pass
