"""ElevenLabs TTS service implementation."""

from __future__ import annotations

import asyncio
import io
import time
from typing import Any

from swizz.config import Settings
from swizz.logging_config import get_logger
from swizz.services.tts.exceptions import (
    TTSConnectionError,
    TTSSynthesisError,
)
from swizz.services.tts.protocol import SynthesisMetadata
from swizz.services.tts.resampler import AudioResampler

logger: Any = get_logger(__name__)


class ElevenLabsTTSService:
    """Synthesizes the agent's replies with a fixed ElevenLabs voice.

    Audio is requested as raw PCM so it can be resampled and re-encoded
    for the telephony stream without an mp3 decode step.
    """

    def __init__(
        self,
        settings: Settings,
        voice_id: str | None = None,
        model_id: str | None = None,
    ) -> None:
        self._settings = settings
        self._voice_id = voice_id or settings.elevenlabs_voice_id
        self._model_id = model_id or settings.elevenlabs_model_id
        self._source_rate = settings.tts_source_sample_rate
        self._resampler: AudioResampler | None = None
        self._client = None

    @property
    def output_format(self) -> str:
        return f"pcm_{self._source_rate}"

    def _get_client(self):
        if self._client is None:
            from elevenlabs import ElevenLabs

            self._client = ElevenLabs(
                api_key=self._settings.elevenlabs_api_key.get_secret_value()
            )
        return self._client

    def _get_resampler(self, target_rate: int) -> AudioResampler:
        if self._resampler is None or self._resampler.target_rate != target_rate:
            self._resampler = AudioResampler(self._source_rate, target_rate)
        return self._resampler

    async def synthesize(
        self,
        text: str,
        *,
        target_sample_rate: int = 8000,
    ) -> tuple[bytes, SynthesisMetadata]:
        """Synthesize text and return PCM at the telephony rate.

        Raises:
            TTSSynthesisError: Empty input or no audio returned
            TTSConnectionError: ElevenLabs request failed
            TTSResamplingError: Resampling failed
        """
        if not text.strip():
            raise TTSSynthesisError("Nothing to synthesize")

        metadata = SynthesisMetadata(
            model=self._model_id,
            voice=self._voice_id,
            input_chars=len(text),
            source_sample_rate=self._source_rate,
            resampled=target_sample_rate != self._source_rate,
        )
        start_time = time.perf_counter()

        try:
            pcm = await asyncio.to_thread(self._synthesize_to_pcm, text)
        except Exception as e:
            logger.error(f"ElevenLabs synthesis error: {e}")
            raise TTSConnectionError(f"ElevenLabs request failed: {e}") from e

        if not pcm:
            raise TTSSynthesisError("No audio received from ElevenLabs")

        # pcm_* output is 16-bit little endian; drop a trailing odd byte
        if len(pcm) % 2:
            pcm = pcm[:-1]

        audio = await self._get_resampler(target_sample_rate).resample(pcm)

        metadata.output_samples = len(audio) // 2
        metadata.output_duration_ms = metadata.output_samples / target_sample_rate * 1000
        metadata.total_synthesis_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Synthesized {metadata.input_chars} chars -> "
            f"{metadata.output_duration_ms:.0f}ms audio in {metadata.total_synthesis_ms:.0f}ms"
        )
        return audio, metadata

    def _synthesize_to_pcm(self, text: str) -> bytes:
        from elevenlabs import VoiceSettings

        client = self._get_client()
        audio_chunks = client.text_to_speech.convert(
            text=text,
            voice_id=self._voice_id,
            model_id=self._model_id,
            output_format=self.output_format,
            voice_settings=VoiceSettings(
                stability=self._settings.voice_stability,
                similarity_boost=self._settings.voice_similarity_boost,
            ),
        )

        buffer = io.BytesIO()
        for chunk in audio_chunks:
            buffer.write(chunk)
        return buffer.getvalue()

    async def close(self) -> None:
        self._resampler = None
        self._client = None

    async def health_check(self) -> bool:
        return bool(self._settings.elevenlabs_api_key.get_secret_value())
