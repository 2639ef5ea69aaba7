"""
Reson8 Decoder
Turns encoded audio bytes into DecodedAudio
"""

import io
import time

import soundfile as sf

from .logging import audio_logger
from .exceptions import DecodeError
from .models import DecodedAudio


def decode_audio(data: bytes, name: str = None) -> DecodedAudio:
    """
    Decode an in-memory audio file.

    Raises:
        DecodeError: if the bytes are empty, unrecognised or corrupt
    """
    if not data:
        raise DecodeError("No audio data supplied")

    start_time = time.time()
    try:
        samples, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
    except (RuntimeError, ValueError, TypeError) as e:
        audio_logger.log_processing_error(operation="AudioDecode", error=str(e), name=name)
        raise DecodeError(f"Could not decode audio: {e}") from e

    if samples.shape[0] == 0:
        raise DecodeError("Audio file contains no frames")

    audio = DecodedAudio(samples=samples.T, sample_rate=int(sample_rate))

    audio_logger.log_processing_complete(
        operation="AudioDecode",
        duration_ms=(time.time() - start_time) * 1000,
        name=name,
        sample_rate=audio.sample_rate,
        channels=audio.channels,
        frames=audio.frames
    )
    return audio
