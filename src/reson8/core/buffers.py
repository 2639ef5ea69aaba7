"""
Buffer helpers for the effects engine
Copying and per-channel reversal of decoded audio
"""

import numpy as np

from .models import SampleBuffer


def clone_samples(buffer: SampleBuffer) -> np.ndarray:
    """Return a private, writable copy of the buffer's samples"""
    return np.array(buffer.samples, dtype=np.float32, copy=True)


def reversed_samples(buffer: SampleBuffer) -> np.ndarray:
    """
    Return a per-channel reversed copy of the buffer's samples.

    The source buffer is left untouched; reversing the result again yields
    the original sample sequence exactly.
    """
    return np.ascontiguousarray(clone_samples(buffer)[:, ::-1])


def playback_samples(buffer: SampleBuffer, reverse: bool) -> np.ndarray:
    """Samples a source node should play for the given reversal flag"""
    if reverse:
        return reversed_samples(buffer)
    return buffer.samples
