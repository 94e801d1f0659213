"""G.711 mu-law codec for telephony media streams (vectorized with numpy)."""

from __future__ import annotations

import numpy as np

MULAW_BIAS = 0x84
MULAW_CLIP = 32635


def mulaw_to_pcm16(ulaw_bytes: bytes) -> bytes:
    """Decode G.711 mu-law bytes to 16-bit little-endian PCM."""
    if not ulaw_bytes:
        return b""

    mu = np.bitwise_not(np.frombuffer(ulaw_bytes, dtype=np.uint8)).astype(np.int32)
    sign = mu & 0x80
    exponent = (mu >> 4) & 0x07
    mantissa = mu & 0x0F

    magnitude = (((mantissa << 3) + MULAW_BIAS) << exponent) - MULAW_BIAS
    pcm = np.where(sign != 0, -magnitude, magnitude)
    return pcm.astype("<i2").tobytes()


def pcm16_to_mulaw(pcm_bytes: bytes) -> bytes:
    """Encode 16-bit little-endian PCM to G.711 mu-law bytes."""
    if not pcm_bytes:
        return b""

    x = np.frombuffer(pcm_bytes, dtype="<i2").astype(np.int32)
    sign = (x < 0).astype(np.int32)
    x = np.minimum(np.abs(x), MULAW_CLIP) + MULAW_BIAS

    exponent = np.zeros_like(x)
    for exp in range(1, 8):
        exponent = np.where(x >= (1 << (exp + 7)), exp, exponent)

    mantissa = (x >> (exponent + 3)) & 0x0F
    ulaw = np.bitwise_not((sign << 7) | (exponent << 4) | mantissa) & 0xFF
    return ulaw.astype(np.uint8).tobytes()
