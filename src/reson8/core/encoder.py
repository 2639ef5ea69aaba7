"""
Reson8 Sample Encoder
Serialises rendered audio into a 16-bit PCM RIFF/WAVE container
"""

import struct
from dataclasses import dataclass

import numpy as np

from .models import WAV_MIME_TYPE, EncodedContainer, SampleBuffer

HEADER_SIZE = 44
BITS_PER_SAMPLE = 16
BYTES_PER_SAMPLE = BITS_PER_SAMPLE // 8
PCM_FORMAT_TAG = 1

# RIFF, size, WAVE, "fmt ", fmt size, tag, channels, rate, byte rate, align, bits, "data", data size
_HEADER_STRUCT = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class WavHeader:
    """Decoded fields of a canonical 44-byte WAV header"""
    riff_size: int
    format_tag: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int

    @property
    def frames(self) -> int:
        return self.data_size // self.block_align if self.block_align else 0


def quantize_pcm16(samples: np.ndarray) -> np.ndarray:
    """
    Clamp to [-1, 1] and scale to signed 16-bit.

    Negative values scale by 32768 and non-negative values by 32767, so both
    full-scale endpoints map exactly onto the integer range.
    """
    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return np.clip(np.rint(scaled), -32768, 32767).astype("<i2")


def build_header(channels: int, sample_rate: int, frames: int) -> bytes:
    data_size = frames * channels * BYTES_PER_SAMPLE
    return _HEADER_STRUCT.pack(
        b"RIFF",
        HEADER_SIZE + data_size - 8,
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT_TAG,
        channels,
        sample_rate,
        sample_rate * channels * BYTES_PER_SAMPLE,
        channels * BYTES_PER_SAMPLE,
        BITS_PER_SAMPLE,
        b"data",
        data_size,
    )


def encode_wav(audio: SampleBuffer) -> EncodedContainer:
    """Encode a (channels, frames) buffer as header + interleaved PCM"""
    pcm = quantize_pcm16(audio.samples)
    # (channels, frames) -> frame-major interleave
    payload = np.ascontiguousarray(pcm.T).tobytes()
    header = build_header(audio.channels, audio.sample_rate, audio.frames)

    return EncodedContainer(
        data=header + payload,
        sample_rate=audio.sample_rate,
        channels=audio.channels,
        frames=audio.frames,
        mime_type=WAV_MIME_TYPE,
    )


def parse_wav_header(data: bytes) -> WavHeader:
    """Parse the canonical 44-byte header written by ``encode_wav``"""
    if len(data) < HEADER_SIZE:
        raise ValueError(f"Need {HEADER_SIZE} bytes for a WAV header, got {len(data)}")

    (riff, riff_size, wave, fmt, fmt_size, format_tag, channels, sample_rate,
     byte_rate, block_align, bits, data_id, data_size) = _HEADER_STRUCT.unpack_from(data)

    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_id != b"data":
        raise ValueError("Not a canonical RIFF/WAVE header")
    if fmt_size != 16:
        raise ValueError(f"Unexpected fmt chunk size {fmt_size}")

    return WavHeader(
        riff_size=riff_size,
        format_tag=format_tag,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
        data_size=data_size,
    )
