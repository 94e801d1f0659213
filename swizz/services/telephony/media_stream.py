"""Parsing and building of telephony media stream messages.

Inbound messages follow Twilio Media Streams (``streamSid``); Plivo audio
streams (``streamId``) are accepted as well. Every message is a JSON object
with an ``event`` field.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from swizz.errors import TransportError


class StreamEventType(str, Enum):
    """Inbound media stream event types."""

    CONNECTED = "connected"
    START = "start"
    MEDIA = "media"
    STOP = "stop"
    MARK = "mark"


@dataclass(frozen=True, slots=True)
class StreamEvent:
    """A parsed inbound media stream message."""

    event: StreamEventType
    stream_sid: str | None = None
    sequence_number: int | None = None
    call_sid: str | None = None
    payload: bytes = b""
    track: str | None = None
    encoding: str | None = None
    sample_rate: int | None = None
    mark_name: str | None = None
    custom_parameters: dict[str, str] = field(default_factory=dict)


def parse_stream_message(raw: str | bytes) -> StreamEvent:
    """Parse one websocket text frame.

    Raises:
        TransportError: Invalid JSON, unknown event, or a malformed payload
    """
    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise TransportError(f"Invalid JSON: {e}") from e

    if not isinstance(message, dict):
        raise TransportError("Message is not a JSON object")

    try:
        event = StreamEventType(message.get("event"))
    except ValueError as e:
        raise TransportError(f"Unknown event: {message.get('event')!r}") from e

    stream_sid = message.get("streamSid") or message.get("streamId")
    sequence_number = _parse_sequence(message.get("sequenceNumber"))

    if event == StreamEventType.START:
        start = message.get("start") or {}
        if not isinstance(start, dict):
            raise TransportError("start block is not an object")
        media_format = start.get("mediaFormat") or {}
        stream_sid = stream_sid or start.get("streamSid") or start.get("streamId")
        if not stream_sid:
            raise TransportError("start event without stream identifier")
        return StreamEvent(
            event=event,
            stream_sid=stream_sid,
            sequence_number=sequence_number,
            call_sid=start.get("callSid") or start.get("callId"),
            encoding=media_format.get("encoding"),
            sample_rate=_parse_int(media_format.get("sampleRate")),
            custom_parameters=dict(start.get("customParameters") or {}),
        )

    if event == StreamEventType.MEDIA:
        media = message.get("media") or {}
        payload = media.get("payload") if isinstance(media, dict) else None
        if not isinstance(payload, str):
            raise TransportError("media event without payload")
        try:
            audio = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise TransportError(f"Invalid base64 payload: {e}") from e
        return StreamEvent(
            event=event,
            stream_sid=stream_sid,
            sequence_number=sequence_number,
            payload=audio,
            track=media.get("track"),
        )

    if event == StreamEventType.MARK:
        mark = message.get("mark") or {}
        return StreamEvent(
            event=event,
            stream_sid=stream_sid,
            sequence_number=sequence_number,
            mark_name=mark.get("name") if isinstance(mark, dict) else None,
        )

    return StreamEvent(event=event, stream_sid=stream_sid, sequence_number=sequence_number)


def build_media_message(stream_sid: str, payload: bytes) -> str:
    """Outbound audio frame."""
    return json.dumps({
        "event": "media",
        "streamSid": stream_sid,
        "media": {"payload": base64.b64encode(payload).decode("ascii")},
    })


def build_mark_message(stream_sid: str, name: str) -> str:
    """Marker sent after a reply so playback completion is acknowledged."""
    return json.dumps({
        "event": "mark",
        "streamSid": stream_sid,
        "mark": {"name": name},
    })


def build_clear_message(stream_sid: str) -> str:
    """Ask the provider to drop any audio still queued for playback."""
    return json.dumps({"event": "clear", "streamSid": stream_sid})


def media_encoding_for(mime_type: str | None, default: str = "mulaw") -> str:
    """Map a declared mediaFormat encoding to mulaw or linear16."""
    if not mime_type:
        return default
    return "mulaw" if "mulaw" in mime_type.lower() else "linear16"


def frame_size(encoding: str, sample_rate: int, frame_ms: int = 20) -> int:
    """Bytes in one outbound media frame."""
    samples = sample_rate * frame_ms // 1000
    return samples if encoding == "mulaw" else samples * 2


def _parse_sequence(value: Any) -> int | None:
    if value is None:
        return None
    parsed = _parse_int(value)
    if parsed is None:
        raise TransportError(f"Invalid sequenceNumber: {value!r}")
    return parsed


def _parse_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
