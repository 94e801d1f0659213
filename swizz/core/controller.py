"""Session controller for one telephony media stream.

Owns the frame buffer, the chunk queue and the single worker task that
feeds chunks to the speech pipeline in arrival order. Ingestion never
waits on the pipeline: when the queue is full the oldest waiting chunk is
discarded.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Any

from swizz.config import Settings
from swizz.core.call_log import CallEventLog
from swizz.core.frame_buffer import FrameBuffer
from swizz.core.pipeline import AudioSender, SpeechPipeline
from swizz.core.session import CallSession
from swizz.db.models import CallStatus
from swizz.errors import TransportError
from swizz.logging_config import get_logger
from swizz.observability.metrics import CHUNKS_DROPPED, record_session_closed
from swizz.services.telephony.g711 import mulaw_to_pcm16
from swizz.services.telephony.media_stream import (
    StreamEvent,
    StreamEventType,
    media_encoding_for,
    parse_stream_message,
)
from swizz.services.telephony.status import map_provider_status

logger: Any = get_logger(__name__)

# (stream_sid, encoding, sample_rate) -> sender for that stream
SenderFactory = Callable[[str, str, int], AudioSender]

# Outbound tracks echo our own audio back; only the far end is transcribed
_INBOUND_TRACKS = frozenset({"inbound", "inbound_track"})


class SessionState(Enum):
    """Lifecycle of a media stream session."""

    IDLE = auto()  # Connected, waiting for start
    STREAMING = auto()  # Receiving media
    CLOSED = auto()  # Stopped or disconnected


class SessionController:
    """Routes stream events for one call and runs its pipeline worker."""

    def __init__(
        self,
        session: CallSession,
        pipeline: SpeechPipeline,
        call_log: CallEventLog,
        sender_factory: SenderFactory,
        *,
        frame_threshold: int = 20,
        queue_size: int = 4,
        media_encoding: str = "mulaw",
        sample_rate: int = 8000,
    ) -> None:
        self._session = session
        self._pipeline = pipeline
        self._call_log = call_log
        self._sender_factory = sender_factory
        self._media_encoding = media_encoding
        self._sample_rate = sample_rate

        self._state = SessionState.IDLE
        self._buffer = FrameBuffer(frame_threshold)
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=queue_size)
        self._worker: asyncio.Task[None] | None = None
        self._sender: AudioSender | None = None
        self._last_sequence: int | None = None
        self._opened_at = datetime.now(UTC)

        self.dropped_chunks = 0
        self.dropped_events = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session: CallSession,
        pipeline: SpeechPipeline,
        call_log: CallEventLog,
        sender_factory: SenderFactory,
    ) -> SessionController:
        return cls(
            session,
            pipeline,
            call_log,
            sender_factory,
            frame_threshold=settings.frame_threshold,
            queue_size=settings.chunk_queue_size,
            media_encoding=settings.media_encoding,
            sample_rate=settings.media_sample_rate,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> CallSession:
        return self._session

    @property
    def pipeline(self) -> SpeechPipeline:
        return self._pipeline

    @property
    def pending_chunks(self) -> int:
        return self._queue.qsize()

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    async def handle_message(self, raw: str | bytes) -> None:
        """Parse and dispatch one websocket frame. Bad frames are dropped."""
        try:
            event = parse_stream_message(raw)
        except TransportError as e:
            self._drop_event(str(e))
            return
        await self.handle_event(event)

    async def handle_event(self, event: StreamEvent) -> None:
        try:
            self._check_sequence(event)

            if event.event == StreamEventType.CONNECTED:
                logger.debug(f"Media stream connected for call {self._session.call_id}")
            elif event.event == StreamEventType.START:
                await self._on_start(event)
            elif event.event == StreamEventType.MEDIA:
                self._on_media(event)
            elif event.event == StreamEventType.MARK:
                logger.debug(f"Playback mark {event.mark_name} for call {self._session.call_id}")
            elif event.event == StreamEventType.STOP:
                logger.info(f"Stream stopped for call {self._session.call_id}")
                await self.close()
        except TransportError as e:
            self._drop_event(str(e))

    def _drop_event(self, reason: str) -> None:
        self.dropped_events += 1
        logger.warning(f"Dropping stream event for call {self._session.call_id}: {reason}")

    def _check_sequence(self, event: StreamEvent) -> None:
        if event.sequence_number is None:
            return
        if self._last_sequence is not None and event.sequence_number <= self._last_sequence:
            raise TransportError(
                f"Out-of-order sequence {event.sequence_number} after {self._last_sequence}"
            )
        self._last_sequence = event.sequence_number

    async def _on_start(self, event: StreamEvent) -> None:
        if self._state != SessionState.IDLE:
            raise TransportError(f"start received while {self._state.name}")

        stream_sid = event.stream_sid or self._session.call_id
        self._session.stream_sid = stream_sid
        self._media_encoding = media_encoding_for(event.encoding, self._media_encoding)
        if event.sample_rate:
            self._sample_rate = event.sample_rate
            self._pipeline.use_sample_rate(event.sample_rate)

        # Replies go back in the format the stream declared
        self._sender = self._sender_factory(stream_sid, self._media_encoding, self._sample_rate)
        self._state = SessionState.STREAMING
        self._worker = asyncio.create_task(
            self._run_worker(self._sender),
            name=f"pipeline-{self._session.call_id}",
        )

        logger.info(
            f"Stream {stream_sid} started for call {self._session.call_id} "
            f"({self._media_encoding}, {self._sample_rate} Hz)"
        )

        if event.call_sid and event.call_sid != self._session.provider_call_sid:
            self._session.provider_call_sid = event.call_sid
            await self._call_log.update(provider_call_sid=event.call_sid)

    def _on_media(self, event: StreamEvent) -> None:
        if self._state != SessionState.STREAMING:
            raise TransportError(f"media received while {self._state.name}")

        if event.track and event.track not in _INBOUND_TRACKS:
            return

        frame = event.payload
        if self._media_encoding == "mulaw":
            frame = mulaw_to_pcm16(frame)

        chunk = self._buffer.push(frame)
        if chunk is not None:
            self._enqueue(chunk)

    def _enqueue(self, chunk: bytes) -> None:
        if self._queue.full():
            # Drop oldest chunk to make room
            try:
                self._queue.get_nowait()
                self._queue.task_done()
            except asyncio.QueueEmpty:
                pass
            else:
                self.dropped_chunks += 1
                CHUNKS_DROPPED.inc()
                logger.warning(
                    f"Pipeline behind for call {self._session.call_id}; dropped oldest chunk"
                )
        self._queue.put_nowait(chunk)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def _run_worker(self, sender: AudioSender) -> None:
        while True:
            chunk = await self._queue.get()
            try:
                if chunk is None:
                    return
                await self._pipeline.process_chunk(chunk, sender)
            except Exception as e:
                logger.exception(f"Pipeline worker error for call {self._session.call_id}: {e}")
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued chunk has been processed."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # External control
    # ------------------------------------------------------------------

    async def request_callback(self) -> bool:
        """Switch the call to bridging back to the user."""
        if self._session.conversation.is_terminal:
            logger.warning(f"Callback requested for finished call {self._session.call_id}")
            return False

        changed = await self._call_log.request_callback(self._session.conversation)
        if changed:
            self._session.callback_requested = True
            if self._sender is not None:
                # The user is being bridged in; stop the agent mid-sentence
                await self._sender.clear_audio()
        return changed

    async def apply_provider_status(
        self,
        provider_status: str,
        duration: str | int | None = None,
    ) -> bool:
        """Apply a provider status callback to the live call."""
        update = map_provider_status(provider_status, duration)
        if update is None:
            logger.debug(f"Ignoring provider status {provider_status!r}")
            return False

        return await self._call_log.apply_provider_status(
            self._session.conversation, update, provider_status
        )

    async def close(self) -> None:
        """Stop ingestion, cancel queued chunks and finalize the call.

        A turn already in progress finishes its current external call and
        skips the rest.
        """
        if self._state == SessionState.CLOSED:
            return
        was_streaming = self._state == SessionState.STREAMING
        self._state = SessionState.CLOSED
        self._pipeline.stop()
        self._buffer.clear()

        cancelled = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            cancelled += 1
        if cancelled:
            logger.info(f"Cancelled {cancelled} queued chunks for call {self._session.call_id}")

        if self._worker is not None:
            self._queue.put_nowait(None)
            await self._worker
            self._worker = None

        if was_streaming:
            await self._finalize()

        duration = (datetime.now(UTC) - self._opened_at).total_seconds()
        record_session_closed(self._session.status.value, duration)
        logger.info(
            f"Session closed for call {self._session.call_id}: "
            f"{self._session.status.value}, {self._pipeline.metrics.to_dict()}"
        )

    async def _finalize(self) -> None:
        conversation = self._session.conversation
        if conversation.is_terminal:
            return
        await self._call_log.transition(
            conversation,
            CallStatus.completed,
            completed_at=datetime.now(UTC),
            call_duration=int(self._session.duration_seconds),
        )
