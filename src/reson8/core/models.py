"""
Reson8 Data Model
Sample buffers, effect parameter snapshots and playback session state
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Sequence, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from .nodes import SourceNode

logger = logging.getLogger(__name__)

PITCH_MIN_CENTS = -1200
PITCH_MAX_CENTS = 1200
ECHO_DELAY_MAX_SECONDS = 2.0
DELAY_LINE_CAPACITY_SECONDS = 5.0
FEEDBACK_MAX = 0.9

WAV_MIME_TYPE = "audio/wav"


class PlaybackStatus(Enum):
    """Live playback state"""
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class SampleBuffer:
    """Multichannel float samples laid out as (channels, frames)"""
    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        if self.samples.ndim != 2:
            raise ValueError(f"Samples must be 2-D (channels, frames), got shape {self.samples.shape}")
        if self.samples.shape[0] < 1:
            raise ValueError("Sample buffer needs at least one channel")
        if self.sample_rate <= 0:
            raise ValueError(f"Invalid sample rate: {self.sample_rate}")

    @classmethod
    def from_channels(cls, channels: Sequence[Sequence[float]], sample_rate: int):
        """Build a buffer from per-channel sample sequences of equal length"""
        lengths = {len(channel) for channel in channels}
        if len(lengths) > 1:
            raise ValueError(f"Channel lengths differ: {sorted(lengths)}")
        samples = np.array([np.asarray(channel, dtype=np.float32) for channel in channels], dtype=np.float32)
        if samples.ndim == 1:
            samples = samples.reshape(len(channels), 0)
        return cls(samples=samples, sample_rate=int(sample_rate))

    @property
    def channels(self) -> int:
        return self.samples.shape[0]

    @property
    def frames(self) -> int:
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        """Duration in seconds"""
        return self.frames / self.sample_rate

    def channel_data(self, channel: int) -> np.ndarray:
        return self.samples[channel]


@dataclass(frozen=True)
class DecodedAudio(SampleBuffer):
    """
    The canonical loaded track.

    The sample array is copied on construction and marked read-only, so the
    reversal helper and the offline renderer can share it freely.
    """

    def __post_init__(self):
        owned = np.array(self.samples, dtype=np.float32)
        owned.flags.writeable = False
        object.__setattr__(self, "samples", owned)
        super().__post_init__()


@dataclass(frozen=True)
class RenderedAudio(SampleBuffer):
    """Output of an offline render, consumed by the encoder"""


@dataclass(frozen=True)
class EncodedContainer:
    """A complete WAV file held in memory"""
    data: bytes
    sample_rate: int
    channels: int
    frames: int
    mime_type: str = WAV_MIME_TYPE

    def __len__(self) -> int:
        return len(self.data)

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate

    def write_to(self, path: Union[str, Path]) -> Path:
        """Persist the container bytes to disk"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path


class EffectParameters(BaseModel):
    """
    Value snapshot of the effect controls.

    Out-of-range values are clamped on construction. Feedback is capped at
    0.9 because a loop gain of 1 or more makes the echo diverge.
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    pitch_shift: int = 0
    echo_delay: float = 0.0
    echo_feedback: float = 0.0
    reversed: bool = False

    @field_validator("pitch_shift")
    @classmethod
    def _clamp_pitch(cls, value: int) -> int:
        return int(_clamp("pitch_shift", value, PITCH_MIN_CENTS, PITCH_MAX_CENTS))

    @field_validator("echo_delay")
    @classmethod
    def _clamp_delay(cls, value: float) -> float:
        return _clamp("echo_delay", value, 0.0, DELAY_LINE_CAPACITY_SECONDS)

    @field_validator("echo_feedback")
    @classmethod
    def _clamp_feedback(cls, value: float) -> float:
        return _clamp("echo_feedback", value, 0.0, FEEDBACK_MAX)

    @property
    def playback_rate(self) -> float:
        """Resampling ratio equivalent to the detune"""
        return 2.0 ** (self.pitch_shift / 1200.0)


def _clamp(name: str, value, low, high):
    if value < low or value > high:
        clamped = min(max(value, low), high)
        logger.warning(f"{name}={value} outside [{low}, {high}], clamped to {clamped}")
        return clamped
    return value


@dataclass
class PlaybackSession:
    """One live playback instance"""
    source: "SourceNode"
    params: EffectParameters
    start_time: float
    on_ended: Optional[Callable[[], None]] = None
    running: bool = True
    session_id: uuid.UUID = field(default_factory=uuid.uuid4)
