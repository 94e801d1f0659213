"""Speech pipeline for one audio chunk.

Each ready chunk runs through:
- WAV encode → transcription (Deepgram)
- speaker classification and human detection
- reply generation (Groq) → synthesis (ElevenLabs)
- hand-off of the reply audio to the media stream

Any stage failure ends only the current turn. A stop request is honoured
between stages.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, TypeVar

from swizz.config import Settings
from swizz.core.call_log import CallEventLog
from swizz.core.classifier import SpeakerClass, classify
from swizz.core.session import CallSession
from swizz.core.wav import encode_wav
from swizz.db.models import CallStatus, TranscriptSpeaker
from swizz.errors import EncodeError, ExternalServiceError
from swizz.logging_config import get_logger
from swizz.observability.metrics import (
    HUMAN_DETECTED,
    record_chunk_result,
    record_stage_failure,
    record_stage_latency,
)
from swizz.services.llm.protocol import LLMService
from swizz.services.notifications import HumanAvailableAlert, UserNotifier
from swizz.services.stt.protocol import STTService
from swizz.services.tts.protocol import TTSService

logger: Any = get_logger(__name__)

T = TypeVar("T")


class AudioSender(Protocol):
    """Protocol for sending reply audio back into the call."""

    async def send_audio(self, audio_bytes: bytes) -> None:
        """Send 16-bit PCM at the stream's sample rate."""
        ...

    async def clear_audio(self) -> None:
        """Drop audio still queued for playback."""
        ...


class TurnOutcome(str, Enum):
    """How a chunk's turn ended."""

    COMPLETED = "completed"
    STOPPED = "stopped"
    ENCODE_FAILED = "encode_failed"
    EMPTY_TRANSCRIPT = "empty_transcript"
    STT_FAILED = "stt_failed"
    LLM_FAILED = "llm_failed"
    TTS_FAILED = "tts_failed"
    SEND_FAILED = "send_failed"


@dataclass(frozen=True, slots=True)
class TurnResult:
    """Result of processing one chunk."""

    outcome: TurnOutcome
    transcript: str | None = None
    speaker: SpeakerClass | None = None
    reply: str | None = None
    human_detected_now: bool = False
    audio_bytes_sent: int = 0


@dataclass
class PipelineConfig:
    """Configuration for the speech pipeline."""

    sample_rate: int = 8000
    language: str = "en"
    max_tokens: int = 150
    temperature: float = 0.7
    stt_timeout: float = 10.0
    llm_timeout: float = 15.0
    tts_timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineConfig:
        """Create config from application settings."""
        return cls(
            sample_rate=settings.media_sample_rate,
            language=settings.transcription_language,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            stt_timeout=settings.stt_timeout_seconds,
            llm_timeout=settings.llm_timeout_seconds,
            tts_timeout=settings.tts_timeout_seconds,
        )


@dataclass
class PipelineMetrics:
    """Metrics collected across a session's turns."""

    chunks_processed: int = 0
    turns_completed: int = 0
    total_audio_sent_bytes: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)

    stt_latencies_ms: list[float] = field(default_factory=list)
    llm_latencies_ms: list[float] = field(default_factory=list)
    tts_latencies_ms: list[float] = field(default_factory=list)

    pipeline_start: datetime = field(default_factory=lambda: datetime.now(UTC))

    def record(self, result: TurnResult) -> None:
        self.chunks_processed += 1
        self.outcomes[result.outcome.value] = self.outcomes.get(result.outcome.value, 0) + 1
        if result.outcome == TurnOutcome.COMPLETED:
            self.turns_completed += 1
        self.total_audio_sent_bytes += result.audio_bytes_sent

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        duration = (datetime.now(UTC) - self.pipeline_start).total_seconds()
        return {
            "chunks_processed": self.chunks_processed,
            "turns_completed": self.turns_completed,
            "total_audio_sent_bytes": self.total_audio_sent_bytes,
            "outcomes": dict(self.outcomes),
            "duration_seconds": duration,
            "avg_stt_latency_ms": self._avg(self.stt_latencies_ms),
            "avg_llm_latency_ms": self._avg(self.llm_latencies_ms),
            "avg_tts_latency_ms": self._avg(self.tts_latencies_ms),
        }

    def _avg(self, values: list[float]) -> float:
        return sum(values) / len(values) if values else 0.0


class SpeechPipeline:
    """Runs transcription, detection, reply and synthesis for one session.

    Not reentrant: the session controller runs at most one chunk at a time.
    """

    def __init__(
        self,
        session: CallSession,
        *,
        stt: STTService,
        llm: LLMService,
        tts: TTSService,
        call_log: CallEventLog,
        notifier: UserNotifier,
        config: PipelineConfig | None = None,
    ) -> None:
        self._session = session
        self._stt = stt
        self._llm = llm
        self._tts = tts
        self._call_log = call_log
        self._notifier = notifier
        self._config = config or PipelineConfig()
        self._metrics = PipelineMetrics()
        self._stopped = False

    @property
    def metrics(self) -> PipelineMetrics:
        return self._metrics

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def use_sample_rate(self, sample_rate: int) -> None:
        """Match the rate the media stream declared on start."""
        if sample_rate != self._config.sample_rate:
            self._config = replace(self._config, sample_rate=sample_rate)

    def stop(self) -> None:
        """Skip remaining stages of the running turn and all later turns."""
        self._stopped = True

    async def process_chunk(self, chunk: bytes, sender: AudioSender) -> TurnResult:
        """Process one buffered chunk of 16-bit PCM."""
        result = await self._run_turn(chunk, sender)
        self._metrics.record(result)
        record_chunk_result(result.outcome.value)
        logger.debug(f"Chunk for call {self._session.call_id}: {result.outcome.value}")
        return result

    async def _run_turn(self, chunk: bytes, sender: AudioSender) -> TurnResult:
        conversation = self._session.conversation
        call_id = self._session.call_id

        if self._stopped:
            return TurnResult(TurnOutcome.STOPPED)

        try:
            wav = encode_wav(chunk, sample_rate=self._config.sample_rate)
        except EncodeError as e:
            logger.warning(f"Dropping chunk for call {call_id}: {e}")
            return TurnResult(TurnOutcome.ENCODE_FAILED)

        # Transcribe
        start = time.perf_counter()
        transcript_result = await self._run_stage(
            "stt",
            self._stt.transcribe(wav, mimetype="audio/wav", language=self._config.language),
            self._config.stt_timeout,
        )
        if transcript_result is None:
            return TurnResult(TurnOutcome.STT_FAILED)
        self._observe("stt", start, self._metrics.stt_latencies_ms)

        if self._stopped:
            return TurnResult(TurnOutcome.STOPPED)

        transcript = transcript_result.text.strip()
        if not transcript:
            return TurnResult(TurnOutcome.EMPTY_TRANSCRIPT)

        logger.info(f"Call {call_id} heard: {transcript[:80]}")
        await self._call_log.append(TranscriptSpeaker.human, transcript)

        conversation.add_user_turn(transcript)

        # Classify
        speaker = classify(transcript)
        human_now = False
        if speaker == SpeakerClass.HUMAN:
            human_now = await self._on_human_detected()

        if self._stopped:
            return TurnResult(
                TurnOutcome.STOPPED,
                transcript=transcript,
                speaker=speaker,
                human_detected_now=human_now,
            )

        # Reply
        start = time.perf_counter()
        generated = await self._run_stage(
            "llm",
            self._llm.generate_reply(
                conversation.history,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
            ),
            self._config.llm_timeout,
        )
        if generated is None:
            return TurnResult(
                TurnOutcome.LLM_FAILED,
                transcript=transcript,
                speaker=speaker,
                human_detected_now=human_now,
            )
        self._observe("llm", start, self._metrics.llm_latencies_ms)

        reply, _ = generated
        conversation.add_assistant_turn(reply)
        await self._call_log.append(TranscriptSpeaker.ai, reply)
        await self._call_log.increment_ai_responses()

        if self._stopped:
            return TurnResult(
                TurnOutcome.STOPPED,
                transcript=transcript,
                speaker=speaker,
                reply=reply,
                human_detected_now=human_now,
            )

        # Synthesize
        start = time.perf_counter()
        synthesized = await self._run_stage(
            "tts",
            self._tts.synthesize(reply, target_sample_rate=self._config.sample_rate),
            self._config.tts_timeout,
        )
        if synthesized is None:
            return TurnResult(
                TurnOutcome.TTS_FAILED,
                transcript=transcript,
                speaker=speaker,
                reply=reply,
                human_detected_now=human_now,
            )
        self._observe("tts", start, self._metrics.tts_latencies_ms)

        audio, _ = synthesized
        if self._stopped:
            return TurnResult(
                TurnOutcome.STOPPED,
                transcript=transcript,
                speaker=speaker,
                reply=reply,
                human_detected_now=human_now,
            )

        try:
            await sender.send_audio(audio)
        except Exception as e:
            logger.error(f"Failed to send reply audio for call {call_id}: {e}")
            record_stage_failure("send")
            return TurnResult(
                TurnOutcome.SEND_FAILED,
                transcript=transcript,
                speaker=speaker,
                reply=reply,
                human_detected_now=human_now,
            )

        return TurnResult(
            TurnOutcome.COMPLETED,
            transcript=transcript,
            speaker=speaker,
            reply=reply,
            human_detected_now=human_now,
            audio_bytes_sent=len(audio),
        )

    async def _run_stage(self, stage: str, call: Awaitable[T], timeout: float) -> T | None:
        """Await an external call; None means the turn must end."""
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except TimeoutError:
            logger.error(f"{stage.upper()} timeout exceeded ({timeout}s) for call {self._session.call_id}")
        except ExternalServiceError as e:
            logger.error(f"{stage.upper()} failed for call {self._session.call_id}: {e}")
        except Exception as e:
            logger.exception(f"Unexpected {stage.upper()} error for call {self._session.call_id}: {e}")
        record_stage_failure(stage)
        return None

    def _observe(self, stage: str, start: float, bucket: list[float]) -> None:
        latency_ms = (time.perf_counter() - start) * 1000
        bucket.append(latency_ms)
        record_stage_latency(stage, latency_ms)

    async def _on_human_detected(self) -> bool:
        """Latch detection, move to connected_to_human and alert the user.

        The store decides the status. A call it already ended gets no alert.
        """
        conversation = self._session.conversation
        detected_at = datetime.now(UTC)
        if not conversation.mark_human_detected(detected_at):
            return False

        HUMAN_DETECTED.inc()
        logger.info(f"Human representative detected on call {self._session.call_id}")

        if conversation.status.can_transition_to(CallStatus.connected_to_human):
            await self._call_log.transition(
                conversation,
                CallStatus.connected_to_human,
                human_detected_at=detected_at,
            )
        else:
            await self._call_log.update(human_detected_at=detected_at)

        if conversation.is_terminal:
            logger.warning(
                f"Call {self._session.call_id} already {conversation.status.value}; "
                "not alerting user"
            )
            return True

        alert = HumanAvailableAlert(
            call_id=self._session.call_id,
            user_phone=self._session.user_phone,
            phone_number=self._session.phone_number,
            issue_description=self._session.issue_description,
            detected_at=detected_at,
            transcript=conversation.get_transcript(last=6),
        )
        try:
            await self._notifier.notify_human_available(alert)
        except ExternalServiceError as e:
            logger.error(f"User alert failed for call {self._session.call_id}: {e}")
        return True
