"""WebSocket handler for the telephony media stream.

Handles the Twilio Media Streams protocol (Plivo stream ids accepted):
- Receives caller audio and control events
- Sends synthesized replies back as 20 ms media frames
- Manages call session lifecycle and process-wide capacity
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from swizz.config import Settings
from swizz.core.call_log import CallEventLog
from swizz.core.controller import SessionController, SessionState
from swizz.core.pipeline import PipelineConfig, SpeechPipeline
from swizz.core.session import CallSession
from swizz.db.models import Call
from swizz.db.session import get_session_factory
from swizz.db.store import CallStore
from swizz.errors import StoreError
from swizz.logging_config import get_logger, mask_phone
from swizz.observability.metrics import ACTIVE_SESSIONS, SESSIONS_REJECTED
from swizz.services.llm.groq import GroqService
from swizz.services.llm.protocol import LLMService
from swizz.services.notifications import UserNotifier, build_notifier
from swizz.services.stt.deepgram import DeepgramService
from swizz.services.stt.protocol import STTService
from swizz.services.telephony.g711 import pcm16_to_mulaw
from swizz.services.telephony.media_stream import (
    build_clear_message,
    build_mark_message,
    build_media_message,
    frame_size,
)
from swizz.services.tts.elevenlabs import ElevenLabsTTSService
from swizz.services.tts.protocol import TTSService

logger: Any = get_logger(__name__)

# Close codes
POLICY_VIOLATION = 1008
TRY_AGAIN_LATER = 1013


class CallCapacityError(Exception):
    """Raised when the process is at maximum call capacity."""

    pass


@dataclass
class CallServices:
    """External collaborators shared by every session in the process."""

    stt: STTService
    llm: LLMService
    tts: TTSService
    notifier: UserNotifier
    store: CallStore

    @classmethod
    def from_settings(cls, settings: Settings) -> CallServices:
        return cls(
            stt=DeepgramService(settings),
            llm=GroqService(settings),
            tts=ElevenLabsTTSService(settings),
            notifier=build_notifier(settings),
            store=CallStore.from_settings(settings, get_session_factory()),
        )


@dataclass
class CallSessionEntry:
    """Entry in the call session registry."""

    controller: SessionController
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class CallSessionRegistry:
    """Registry of live media stream sessions.

    Maps call id to its controller so status callbacks and callback
    requests can reach a live call.
    """

    def __init__(self, max_sessions: int = 10) -> None:
        self._sessions: dict[str, CallSessionEntry] = {}
        self._lock = asyncio.Lock()
        self.max_sessions = max_sessions

    async def register(self, call_id: str, controller: SessionController) -> None:
        """Add a session.

        Raises:
            CallCapacityError: At capacity, or the call already has a live stream
        """
        async with self._lock:
            if call_id in self._sessions:
                raise CallCapacityError(f"Call {call_id} already has a live stream")

            if len(self._sessions) >= self.max_sessions:
                logger.warning(
                    f"Max concurrent calls reached ({self.max_sessions}), "
                    f"rejecting call {call_id}"
                )
                raise CallCapacityError(
                    f"System at capacity ({self.max_sessions} concurrent calls)"
                )

            self._sessions[call_id] = CallSessionEntry(controller=controller)
            ACTIVE_SESSIONS.set(len(self._sessions))
            logger.info(
                f"Registered call {call_id} (active: {len(self._sessions)}/{self.max_sessions})"
            )

    async def get(self, call_id: str) -> SessionController | None:
        async with self._lock:
            entry = self._sessions.get(call_id)
            return entry.controller if entry else None

    async def remove(self, call_id: str) -> CallSessionEntry | None:
        async with self._lock:
            entry = self._sessions.pop(call_id, None)
            ACTIVE_SESSIONS.set(len(self._sessions))
            return entry

    async def request_callback(self, call_id: str) -> bool:
        """Forward a callback request to a live call."""
        controller = await self.get(call_id)
        if controller is None:
            logger.warning(f"Callback requested for call {call_id} with no live stream")
            return False
        return await controller.request_callback()

    async def apply_provider_status(
        self,
        call_id: str,
        provider_status: str,
        duration: str | int | None = None,
    ) -> bool:
        """Forward a provider status callback to a live call."""
        controller = await self.get(call_id)
        if controller is None:
            return False
        return await controller.apply_provider_status(provider_status, duration)

    async def close_all(self) -> None:
        """Close all sessions (for shutdown)."""
        async with self._lock:
            entries = list(self._sessions.items())
            self._sessions.clear()
            ACTIVE_SESSIONS.set(0)

        for call_id, entry in entries:
            try:
                await entry.controller.close()
            except Exception as e:
                logger.error(f"Error closing session {call_id}: {e}")

    @property
    def active_count(self) -> int:
        return len(self._sessions)


class TwilioAudioSender:
    """Sends reply audio into the call over the media stream websocket.

    Implements the AudioSender protocol for SpeechPipeline.
    """

    def __init__(
        self,
        websocket: WebSocket,
        stream_sid: str,
        *,
        encoding: str = "mulaw",
        frame_bytes: int = 160,
    ) -> None:
        self._websocket = websocket
        self._stream_sid = stream_sid
        self._encoding = encoding
        self._frame_bytes = frame_bytes
        self._replies = 0

    async def send_audio(self, audio_bytes: bytes) -> None:
        """Send 16-bit PCM as a run of media frames followed by a mark."""
        if self._encoding == "mulaw":
            audio_bytes = pcm16_to_mulaw(audio_bytes)

        for offset in range(0, len(audio_bytes), self._frame_bytes):
            frame = audio_bytes[offset: offset + self._frame_bytes]
            await self._websocket.send_text(build_media_message(self._stream_sid, frame))

        self._replies += 1
        await self._websocket.send_text(
            build_mark_message(self._stream_sid, f"reply-{self._replies}")
        )

    async def clear_audio(self) -> None:
        try:
            await self._websocket.send_text(build_clear_message(self._stream_sid))
        except Exception as e:
            logger.error(f"Failed to clear audio: {e}")


async def load_call_session(
    call_id: str,
    params: Mapping[str, str],
    store: CallStore,
) -> CallSession | None:
    """Resolve the call behind a stream.

    Uses the stored call when present. Otherwise the ``callReason``,
    ``userPhone`` and ``phoneNumber`` query parameters describe the call and
    a record is created for it. Returns None when neither source names a
    reason or the stored call is already finished.
    """
    try:
        call = await store.get(call_id)
    except StoreError as e:
        logger.error(f"Could not load call {call_id}: {e}")
        call = None

    if call is not None:
        if call.status.is_terminal:
            logger.warning(f"Stream opened for finished call {call_id} ({call.status.value})")
            return None
        return CallSession.from_call(call)

    reason = (params.get("callReason") or "").strip()
    if not reason:
        return None

    call = Call(
        id=call_id,
        phone_number=params.get("phoneNumber", ""),
        issue_description=reason,
        user_phone=params.get("userPhone") or None,
    )
    try:
        await store.create(call)
    except StoreError as e:
        logger.error(f"Could not record call {call_id}: {e}")

    logger.info(f"Call {call_id} started from stream parameters (user {mask_phone(call.user_phone)})")
    return CallSession.from_call(call)


def build_controller(
    session: CallSession,
    websocket: WebSocket,
    services: CallServices,
    settings: Settings,
) -> SessionController:
    """Wire a session's pipeline, transcript log and sender."""
    call_log = CallEventLog(services.store, session.call_id)
    pipeline = SpeechPipeline(
        session,
        stt=services.stt,
        llm=services.llm,
        tts=services.tts,
        call_log=call_log,
        notifier=services.notifier,
        config=PipelineConfig.from_settings(settings),
    )

    def sender_factory(stream_sid: str, encoding: str, sample_rate: int) -> TwilioAudioSender:
        return TwilioAudioSender(
            websocket,
            stream_sid,
            encoding=encoding,
            frame_bytes=frame_size(encoding, sample_rate, settings.outbound_frame_ms),
        )

    return SessionController.from_settings(settings, session, pipeline, call_log, sender_factory)


async def media_stream_endpoint(
    websocket: WebSocket,
    call_id: str,
    *,
    services: CallServices,
    settings: Settings,
    registry: CallSessionRegistry,
) -> None:
    """Handle one telephony media stream connection.

    Protocol:
    - Receives JSON messages with events: connected, start, media, mark, stop
    - Sends JSON messages with events: media, mark
    """
    await websocket.accept()
    logger.info(f"WebSocket connected for call {call_id}")

    session = await load_call_session(call_id, websocket.query_params, services.store)
    if session is None:
        SESSIONS_REJECTED.labels(reason="unknown_call").inc()
        await websocket.close(code=POLICY_VIOLATION, reason="Unknown call")
        return

    controller = build_controller(session, websocket, services, settings)
    try:
        await registry.register(call_id, controller)
    except CallCapacityError as e:
        SESSIONS_REJECTED.labels(reason="capacity").inc()
        await websocket.close(code=TRY_AGAIN_LATER, reason=str(e))
        return

    try:
        while controller.state != SessionState.CLOSED:
            data = await websocket.receive_text()
            await controller.handle_message(data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for call {call_id}")

    except Exception as e:
        logger.error(f"WebSocket error for call {call_id}: {e}")

    finally:
        await controller.close()
        await registry.remove(call_id)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
