"""Error taxonomy shared by the call pipeline.

Service-specific subclasses live beside each service
(swizz.services.*.exceptions) and derive from ExternalServiceError.
"""


class SwizzError(Exception):
    """Base exception for the service."""

    pass


class TransportError(SwizzError):
    """Raised when a telephony stream event cannot be parsed or is out of order."""

    pass


class EncodeError(SwizzError):
    """Raised when an audio chunk cannot be wrapped in a WAV container."""

    pass


class ExternalServiceError(SwizzError):
    """Raised when transcription, reply generation or synthesis fails."""

    pass


class StoreError(SwizzError):
    """Raised when the call store rejects a write after retries."""

    pass
