"""Minimal RIFF/WAVE container for PCM chunks sent to transcription."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from swizz.errors import EncodeError

WAV_HEADER_SIZE = 44
PCM_FORMAT = 1

# RIFF header, fmt chunk and data chunk header, little endian
_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True, slots=True)
class WavHeader:
    """Decoded 44-byte WAV preamble."""

    riff_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_length: int


def encode_wav(
    pcm: bytes,
    *,
    sample_rate: int = 8000,
    channels: int = 1,
    bits_per_sample: int = 16,
) -> bytes:
    """Wrap raw PCM samples in a WAV header.

    Raises:
        EncodeError: Empty payload or a length that is not whole frames
    """
    if not pcm:
        raise EncodeError("Cannot encode an empty chunk")

    block_align = channels * bits_per_sample // 8
    if len(pcm) % block_align:
        raise EncodeError(
            f"Chunk of {len(pcm)} bytes is not a whole number of "
            f"{bits_per_sample}-bit frames"
        )

    header = _HEADER.pack(
        b"RIFF",
        36 + len(pcm),
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT,
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        bits_per_sample,
        b"data",
        len(pcm),
    )
    return header + pcm


def parse_wav_header(data: bytes) -> WavHeader:
    """Decode the preamble written by encode_wav.

    Raises:
        EncodeError: Data is too short or not a PCM WAV file
    """
    if len(data) < WAV_HEADER_SIZE:
        raise EncodeError("Data shorter than a WAV header")

    (
        riff,
        riff_size,
        wave,
        fmt,
        _fmt_size,
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        data_tag,
        data_length,
    ) = _HEADER.unpack_from(data)

    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
        raise EncodeError("Not a canonical PCM WAV header")

    return WavHeader(
        riff_size=riff_size,
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_length=data_length,
    )
