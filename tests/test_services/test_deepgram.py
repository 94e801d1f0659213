"""Tests for Deepgram STT service."""

import os
from types import SimpleNamespace

import pytest

from swizz.core.wav import encode_wav
from swizz.services.stt.deepgram import DeepgramService
from swizz.services.stt.exceptions import STTConnectionError, STTServiceError
from swizz.services.stt.protocol import TranscriptResult


def fake_client(response=None, error: Exception | None = None):
    """Deepgram client stub exposing listen.prerecorded.v("1").transcribe_file."""
    captured: dict = {}

    def transcribe_file(source, options):
        captured["source"] = source
        captured["options"] = options
        if error is not None:
            raise error
        return response

    prerecorded = SimpleNamespace(v=lambda version: SimpleNamespace(transcribe_file=transcribe_file))
    client = SimpleNamespace(listen=SimpleNamespace(prerecorded=prerecorded))
    return client, captured


def response_with(transcript: str, confidence: float = 0.93):
    alternative = SimpleNamespace(transcript=transcript, confidence=confidence)
    channel = SimpleNamespace(alternatives=[alternative])
    return SimpleNamespace(results=SimpleNamespace(channels=[channel]))


class TestTranscriptResult:
    """Tests for TranscriptResult dataclass."""

    def test_blank_detection(self) -> None:
        assert TranscriptResult(text="  ").is_blank is True
        assert TranscriptResult(text="hold please").is_blank is False


class TestDeepgramService:
    """Tests for DeepgramService with a stubbed client."""

    @pytest.fixture
    def service(self, settings_factory):
        return DeepgramService(settings_factory(deepgram_model="nova-2-phonecall"))

    @pytest.mark.asyncio
    async def test_transcribe_returns_best_alternative(self, service) -> None:
        client, captured = fake_client(response_with("Please hold for the next agent"))
        service._client = client
        wav = encode_wav(b"\x00\x00" * 800)

        result = await service.transcribe(wav, language="en")

        assert result.text == "Please hold for the next agent"
        assert result.confidence == 0.93
        assert result.latency_ms is not None
        assert captured["source"] == {"buffer": wav, "mimetype": "audio/wav"}
        assert captured["options"].model == "nova-2-phonecall"
        assert captured["options"].language == "en"

    @pytest.mark.asyncio
    async def test_no_alternatives_is_blank(self, service) -> None:
        response = SimpleNamespace(
            results=SimpleNamespace(channels=[SimpleNamespace(alternatives=[])])
        )
        service._client, _ = fake_client(response)

        result = await service.transcribe(b"RIFF")

        assert result.is_blank

    @pytest.mark.asyncio
    async def test_provider_error_wrapped(self, service) -> None:
        service._client, _ = fake_client(error=RuntimeError("502 Bad Gateway"))

        with pytest.raises(STTServiceError):
            await service.transcribe(b"RIFF")

    @pytest.mark.asyncio
    async def test_connection_error_mapped(self, service) -> None:
        service._client, _ = fake_client(error=ConnectionResetError("reset by peer"))

        with pytest.raises(STTConnectionError):
            await service.transcribe(b"RIFF")

    @pytest.mark.asyncio
    async def test_close_drops_client(self, service) -> None:
        service._client, _ = fake_client()
        await service.close()
        assert service._client is None


def _has_deepgram_key() -> bool:
    return bool(os.environ.get("DEEPGRAM_API_KEY"))


@pytest.mark.skipif(not _has_deepgram_key(), reason="DEEPGRAM_API_KEY not set")
class TestDeepgramIntegration:
    """Integration tests for Deepgram API (env-gated)."""

    @pytest.mark.asyncio
    async def test_silence_transcribes_blank(self, settings_factory) -> None:
        """Two seconds of silence yields no words."""
        service = DeepgramService(
            settings_factory(deepgram_api_key=os.environ["DEEPGRAM_API_KEY"])
        )
        result = await service.transcribe(encode_wav(b"\x00\x00" * 16000))
        assert result.is_blank
