"""Audio resampling utilities using soxr."""

from __future__ import annotations

import asyncio
from typing import Any

import numpy as np
import soxr

from swizz.logging_config import get_logger
from swizz.services.tts.exceptions import TTSResamplingError

logger: Any = get_logger(__name__)


class AudioResampler:
    """Converts 16-bit mono PCM between sample rates.

    ElevenLabs returns 16 kHz PCM; the telephony leg runs at 8 kHz.
    """

    def __init__(
        self,
        source_rate: int,
        target_rate: int,
        quality: str = "HQ",
    ) -> None:
        self.source_rate = source_rate
        self.target_rate = target_rate
        self._quality = quality

    @property
    def needs_resampling(self) -> bool:
        return self.source_rate != self.target_rate

    async def resample(self, audio_data: bytes) -> bytes:
        """Resample audio data off the event loop.

        Raises:
            TTSResamplingError: If the input is not valid 16-bit PCM or soxr fails
        """
        if not self.needs_resampling or not audio_data:
            return audio_data

        try:
            return await asyncio.to_thread(self.resample_sync, audio_data)
        except Exception as e:
            logger.error(f"Resampling failed: {e}")
            raise TTSResamplingError(f"Failed to resample audio: {e}") from e

    def resample_sync(self, audio_data: bytes) -> bytes:
        if not self.needs_resampling or not audio_data:
            return audio_data

        samples = np.frombuffer(audio_data, dtype=np.int16)
        audio_float = samples.astype(np.float64) / 32768.0

        resampled = soxr.resample(
            audio_float,
            self.source_rate,
            self.target_rate,
            quality=self._quality,
        )

        return bytes((resampled * 32767).clip(-32768, 32767).astype(np.int16).tobytes())
