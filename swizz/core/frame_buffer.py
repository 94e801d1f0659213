"""Accumulates inbound media frames into fixed-size chunks."""

from __future__ import annotations

DEFAULT_FRAME_THRESHOLD = 20


class FrameBuffer:
    """Collects frames until a threshold count is reached.

    push() hands back the concatenated chunk exactly when the threshold is
    hit and starts a new chunk. Frames below the threshold stay buffered.
    """

    def __init__(self, threshold: int = DEFAULT_FRAME_THRESHOLD) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self._threshold = threshold
        self._frames: list[bytes] = []

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def pending_frames(self) -> int:
        return len(self._frames)

    def push(self, frame: bytes) -> bytes | None:
        """Append a frame; return the ready chunk or None."""
        self._frames.append(frame)
        if len(self._frames) < self._threshold:
            return None

        chunk = b"".join(self._frames)
        self._frames = []
        return chunk

    def clear(self) -> None:
        """Discard buffered frames."""
        self._frames = []
