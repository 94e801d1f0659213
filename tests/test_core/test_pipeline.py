"""Tests for the per-chunk speech pipeline."""

import asyncio

import pytest
from conftest import FakeLLM, FakeSTT, FakeTTS, RecordingNotifier, RecordingSender

from swizz.core.call_log import CallEventLog
from swizz.core.classifier import SpeakerClass
from swizz.core.frame_buffer import FrameBuffer
from swizz.core.pipeline import (
    PipelineConfig,
    PipelineMetrics,
    SpeechPipeline,
    TurnOutcome,
    TurnResult,
)
from swizz.core.session import CallSession
from swizz.db.models import CallStatus, TranscriptSpeaker
from swizz.services.llm.exceptions import LLMServiceError
from swizz.services.llm.protocol import Role
from swizz.services.stt.exceptions import STTServiceError
from swizz.services.tts.exceptions import TTSSynthesisError

HUMAN_GREETING = "Hello, this is Sarah speaking, how can I help you?"
CHUNK = b"\x10\x00" * 1000


def make_pipeline(
    call,
    store,
    *,
    stt=None,
    llm=None,
    tts=None,
    notifier=None,
    config=None,
) -> SpeechPipeline:
    session = CallSession.from_call(call)
    return SpeechPipeline(
        session,
        stt=stt or FakeSTT(),
        llm=llm or FakeLLM(),
        tts=tts or FakeTTS(),
        call_log=CallEventLog(store, call.id),
        notifier=notifier or RecordingNotifier(),
        config=config,
    )


class TestPipelineConfig:
    """Tests for PipelineConfig."""

    def test_defaults(self) -> None:
        config = PipelineConfig()

        assert config.sample_rate == 8000
        assert config.max_tokens == 150
        assert config.temperature == 0.7

    def test_from_settings(self, settings_factory) -> None:
        settings = settings_factory(
            media_sample_rate=16000,
            llm_max_tokens=80,
            llm_timeout_seconds=3.0,
            transcription_language="es",
        )
        config = PipelineConfig.from_settings(settings)

        assert config.sample_rate == 16000
        assert config.max_tokens == 80
        assert config.llm_timeout == 3.0
        assert config.language == "es"


class TestPipelineMetrics:
    """Tests for PipelineMetrics."""

    def test_record_counts_outcomes(self) -> None:
        metrics = PipelineMetrics()
        metrics.record(TurnResult(TurnOutcome.COMPLETED, audio_bytes_sent=320))
        metrics.record(TurnResult(TurnOutcome.STT_FAILED))
        metrics.record(TurnResult(TurnOutcome.COMPLETED, audio_bytes_sent=160))

        data = metrics.to_dict()
        assert data["chunks_processed"] == 3
        assert data["turns_completed"] == 2
        assert data["total_audio_sent_bytes"] == 480
        assert data["outcomes"] == {"completed": 2, "stt_failed": 1}
        assert data["avg_stt_latency_ms"] == 0.0


class TestSpeechPipeline:
    """End-to-end turns through SpeechPipeline with fake services."""

    @pytest.mark.asyncio
    async def test_automated_turn_end_to_end(self, stored_call, call_store) -> None:
        """Twenty 100-byte frames make one turn; no human, status unchanged."""
        stt = FakeSTT(["I need to speak to billing"])
        llm = FakeLLM(["I'll hold for the billing department."])
        sender = RecordingSender()
        pipeline = make_pipeline(stored_call, call_store, stt=stt, llm=llm)

        buffer = FrameBuffer(threshold=20)
        chunks = [c for c in (buffer.push(b"\x00" * 100) for _ in range(20)) if c]
        assert len(chunks) == 1
        assert len(chunks[0]) == 2000

        result = await pipeline.process_chunk(chunks[0], sender)

        assert result.outcome == TurnOutcome.COMPLETED
        assert result.speaker == SpeakerClass.AUTOMATED
        assert result.human_detected_now is False
        assert result.reply == "I'll hold for the billing department."

        # STT saw a WAV container around the chunk
        assert stt.calls[0][:4] == b"RIFF"
        assert len(stt.calls[0]) == 44 + 2000

        conversation = pipeline._session.conversation
        assert conversation.human_detected is False
        assert conversation.status == CallStatus.calling
        assert [m.role for m in conversation.history] == [
            Role.SYSTEM,
            Role.USER,
            Role.ASSISTANT,
        ]

        entries = await call_store.list_transcription(stored_call.id)
        assert [(e.speaker, e.text) for e in entries] == [
            (TranscriptSpeaker.human, "I need to speak to billing"),
            (TranscriptSpeaker.ai, "I'll hold for the billing department."),
        ]

        call = await call_store.get(stored_call.id)
        assert call.status == CallStatus.calling
        assert call.ai_responses_count == 1
        assert len(sender.sent) == 1
        assert result.audio_bytes_sent == len(sender.sent[0])

    @pytest.mark.asyncio
    async def test_reply_uses_full_history(self, stored_call, call_store) -> None:
        """Each reply request carries every previous turn."""
        llm = FakeLLM()
        pipeline = make_pipeline(
            stored_call,
            call_store,
            stt=FakeSTT(["Press 1 for sales", "Please hold"]),
            llm=llm,
        )
        sender = RecordingSender()

        await pipeline.process_chunk(CHUNK, sender)
        await pipeline.process_chunk(CHUNK, sender)

        second = llm.histories[1]
        assert [m.content for m in second[1:]] == ["Press 1 for sales", "Reply 1", "Please hold"]
        assert "Dispute a double charge" in second[0].content

    @pytest.mark.asyncio
    async def test_human_detection_transitions_and_alerts(self, stored_call, call_store) -> None:
        """The first human transcript moves the call and alerts the user."""
        notifier = RecordingNotifier()
        pipeline = make_pipeline(
            stored_call,
            call_store,
            stt=FakeSTT([HUMAN_GREETING]),
            notifier=notifier,
        )

        result = await pipeline.process_chunk(CHUNK, RecordingSender())

        assert result.outcome == TurnOutcome.COMPLETED
        assert result.speaker == SpeakerClass.HUMAN
        assert result.human_detected_now is True
        assert pipeline._session.status == CallStatus.connected_to_human

        call = await call_store.get(stored_call.id)
        assert call.status == CallStatus.connected_to_human
        assert call.human_detected_at is not None

        assert len(notifier.alerts) == 1
        alert = notifier.alerts[0]
        assert alert.call_id == stored_call.id
        assert alert.user_phone == "+15559998888"
        assert HUMAN_GREETING in alert.transcript

    @pytest.mark.asyncio
    async def test_human_detection_fires_once(self, stored_call, call_store) -> None:
        """Later human transcripts do not re-alert."""
        notifier = RecordingNotifier()
        pipeline = make_pipeline(
            stored_call,
            call_store,
            stt=FakeSTT([HUMAN_GREETING, "Hi, my name is Sarah, are you there?"]),
            notifier=notifier,
        )
        sender = RecordingSender()

        first = await pipeline.process_chunk(CHUNK, sender)
        second = await pipeline.process_chunk(CHUNK, sender)

        assert first.human_detected_now is True
        assert second.speaker == SpeakerClass.HUMAN
        assert second.human_detected_now is False
        assert len(notifier.alerts) == 1

    @pytest.mark.asyncio
    async def test_no_alert_for_call_ended_elsewhere(self, stored_call, call_store) -> None:
        """A human heard after a status callback failed the call is not reported."""
        notifier = RecordingNotifier()
        pipeline = make_pipeline(
            stored_call,
            call_store,
            stt=FakeSTT([HUMAN_GREETING]),
            notifier=notifier,
        )
        await call_store.transition_status(stored_call.id, CallStatus.failed)

        result = await pipeline.process_chunk(CHUNK, RecordingSender())

        assert result.human_detected_now is True
        assert pipeline._session.status == CallStatus.failed
        assert notifier.alerts == []
        call = await call_store.get(stored_call.id)
        assert call.status == CallStatus.failed

    @pytest.mark.asyncio
    async def test_alert_failure_does_not_end_turn(self, stored_call, call_store) -> None:
        pipeline = make_pipeline(
            stored_call,
            call_store,
            stt=FakeSTT([HUMAN_GREETING]),
            notifier=RecordingNotifier(fail=True),
        )

        result = await pipeline.process_chunk(CHUNK, RecordingSender())

        assert result.outcome == TurnOutcome.COMPLETED
        assert pipeline._session.conversation.human_detected is True

    @pytest.mark.asyncio
    async def test_stt_failure_aborts_turn(self, stored_call, call_store) -> None:
        """Nothing is appended when transcription fails."""
        llm = FakeLLM()
        pipeline = make_pipeline(
            stored_call,
            call_store,
            stt=FakeSTT([STTServiceError("deepgram down")]),
            llm=llm,
        )

        result = await pipeline.process_chunk(CHUNK, RecordingSender())

        assert result.outcome == TurnOutcome.STT_FAILED
        assert llm.histories == []
        assert pipeline._session.conversation.turn_count == 1
        assert await call_store.list_transcription(stored_call.id) == []

    @pytest.mark.asyncio
    async def test_blank_transcript_aborts_turn(self, stored_call, call_store) -> None:
        llm = FakeLLM()
        pipeline = make_pipeline(stored_call, call_store, stt=FakeSTT(["   "]), llm=llm)

        result = await pipeline.process_chunk(CHUNK, RecordingSender())

        assert result.outcome == TurnOutcome.EMPTY_TRANSCRIPT
        assert llm.histories == []
        assert await call_store.list_transcription(stored_call.id) == []

    @pytest.mark.asyncio
    async def test_llm_failure_keeps_user_turn(self, stored_call, call_store) -> None:
        """The heard line is kept; no reply is logged or spoken."""
        tts = FakeTTS()
        pipeline = make_pipeline(
            stored_call,
            call_store,
            stt=FakeSTT(["Please hold"]),
            llm=FakeLLM([LLMServiceError("groq down")]),
            tts=tts,
        )

        result = await pipeline.process_chunk(CHUNK, RecordingSender())

        assert result.outcome == TurnOutcome.LLM_FAILED
        assert tts.texts == []
        entries = await call_store.list_transcription(stored_call.id)
        assert [e.speaker for e in entries] == [TranscriptSpeaker.human]
        call = await call_store.get(stored_call.id)
        assert call.ai_responses_count == 0

    @pytest.mark.asyncio
    async def test_llm_timeout_is_a_failure(self, stored_call, call_store) -> None:
        pipeline = make_pipeline(
            stored_call,
            call_store,
            stt=FakeSTT(["Please hold"]),
            llm=FakeLLM(delays=[1.0]),
            config=PipelineConfig(llm_timeout=0.01),
        )

        result = await pipeline.process_chunk(CHUNK, RecordingSender())

        assert result.outcome == TurnOutcome.LLM_FAILED

    @pytest.mark.asyncio
    async def test_tts_failure_keeps_reply_unspoken(self, stored_call, call_store) -> None:
        sender = RecordingSender()
        pipeline = make_pipeline(
            stored_call,
            call_store,
            stt=FakeSTT(["Please hold"]),
            tts=FakeTTS(error=TTSSynthesisError("no audio")),
        )

        result = await pipeline.process_chunk(CHUNK, sender)

        assert result.outcome == TurnOutcome.TTS_FAILED
        assert result.reply == "Reply 1"
        assert sender.sent == []
        entries = await call_store.list_transcription(stored_call.id)
        assert [e.speaker for e in entries] == [TranscriptSpeaker.human, TranscriptSpeaker.ai]

    @pytest.mark.asyncio
    async def test_send_failure_reported(self, stored_call, call_store) -> None:
        pipeline = make_pipeline(stored_call, call_store, stt=FakeSTT(["Please hold"]))

        result = await pipeline.process_chunk(CHUNK, RecordingSender(fail=True))

        assert result.outcome == TurnOutcome.SEND_FAILED

    @pytest.mark.asyncio
    async def test_unencodable_chunk_dropped(self, stored_call, call_store) -> None:
        stt = FakeSTT(["never used"])
        pipeline = make_pipeline(stored_call, call_store, stt=stt)

        result = await pipeline.process_chunk(b"\x00\x01\x02", RecordingSender())

        assert result.outcome == TurnOutcome.ENCODE_FAILED
        assert stt.calls == []

    @pytest.mark.asyncio
    async def test_failed_turn_does_not_affect_next(self, stored_call, call_store) -> None:
        """A failure ends only its own turn."""
        pipeline = make_pipeline(
            stored_call,
            call_store,
            stt=FakeSTT([STTServiceError("blip"), "Please hold"]),
        )
        sender = RecordingSender()

        first = await pipeline.process_chunk(CHUNK, sender)
        second = await pipeline.process_chunk(CHUNK, sender)

        assert first.outcome == TurnOutcome.STT_FAILED
        assert second.outcome == TurnOutcome.COMPLETED
        assert pipeline.metrics.chunks_processed == 2
        assert pipeline.metrics.turns_completed == 1


class TestPipelineStop:
    """Tests for stop requests."""

    @pytest.mark.asyncio
    async def test_stopped_pipeline_skips_chunk(self, stored_call, call_store) -> None:
        stt = FakeSTT(["Please hold"])
        pipeline = make_pipeline(stored_call, call_store, stt=stt)
        pipeline.stop()

        result = await pipeline.process_chunk(CHUNK, RecordingSender())

        assert result.outcome == TurnOutcome.STOPPED
        assert stt.calls == []
        assert pipeline.stopped is True

    @pytest.mark.asyncio
    async def test_stop_mid_turn_skips_later_stages(self, stored_call, call_store) -> None:
        """A stop during transcription skips reply, synthesis and send."""
        llm = FakeLLM()
        sender = RecordingSender()
        pipeline = make_pipeline(
            stored_call,
            call_store,
            stt=FakeSTT(["Please hold"], delay=0.05),
            llm=llm,
        )

        task = asyncio.create_task(pipeline.process_chunk(CHUNK, sender))
        await asyncio.sleep(0.01)
        pipeline.stop()
        result = await task

        assert result.outcome == TurnOutcome.STOPPED
        assert llm.histories == []
        assert sender.sent == []
