"""WebSocket handlers for the telephony media stream.

- media_stream_endpoint: Main WebSocket handler
- CallSessionRegistry: live sessions by call id
"""

from swizz.api.websocket.media_stream import (
    CallCapacityError,
    CallServices,
    CallSessionEntry,
    CallSessionRegistry,
    TwilioAudioSender,
    media_stream_endpoint,
)

__all__ = [
    "media_stream_endpoint",
    "CallCapacityError",
    "CallServices",
    "CallSessionRegistry",
    "CallSessionEntry",
    "TwilioAudioSender",
]
