"""Text-to-Speech services (ElevenLabs)."""

from swizz.services.tts.elevenlabs import ElevenLabsTTSService
from swizz.services.tts.exceptions import (
    TTSConnectionError,
    TTSResamplingError,
    TTSServiceError,
    TTSSynthesisError,
)
from swizz.services.tts.protocol import SynthesisMetadata, TTSService
from swizz.services.tts.resampler import AudioResampler

__all__ = [
    "ElevenLabsTTSService",
    "TTSService",
    "SynthesisMetadata",
    "AudioResampler",
    "TTSServiceError",
    "TTSSynthesisError",
    "TTSConnectionError",
    "TTSResamplingError",
]
