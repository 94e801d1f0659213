"""Telephony media stream support.

- G.711 mu-law codec for inbound/outbound audio
- Media stream message parsing and builders
- Provider status callback mapping
"""

from swizz.services.telephony.g711 import mulaw_to_pcm16, pcm16_to_mulaw
from swizz.services.telephony.media_stream import (
    StreamEvent,
    StreamEventType,
    build_clear_message,
    build_mark_message,
    build_media_message,
    frame_size,
    media_encoding_for,
    parse_stream_message,
)
from swizz.services.telephony.status import StatusUpdate, map_provider_status

__all__ = [
    # Codec
    "mulaw_to_pcm16",
    "pcm16_to_mulaw",
    # Stream messages
    "StreamEvent",
    "StreamEventType",
    "parse_stream_message",
    "build_media_message",
    "build_mark_message",
    "build_clear_message",
    "frame_size",
    "media_encoding_for",
    # Status callbacks
    "StatusUpdate",
    "map_provider_status",
]
