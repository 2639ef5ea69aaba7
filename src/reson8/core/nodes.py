"""
Reson8 Graph Nodes
Block-based audio nodes used by both the live and the offline signal graph
"""

import math
import threading
from typing import Callable, List, Optional, Tuple

import numpy as np
from scipy.signal import windows

from .exceptions import InvalidNodeStateError


class AudioParam:
    """
    Automatable node parameter.

    Holds a base value plus a queue of exponential approach events
    (``set_target_at_time``). Values are computed per sample for each render
    block, so ramps stay continuous across blocks and across back-to-back
    updates.
    """

    def __init__(self, name: str, default_value: float, min_value: float, max_value: float):
        self.name = name
        self.default_value = float(default_value)
        self.min_value = float(min_value)
        self.max_value = float(max_value)

        self._base_value = self.default_value
        self._base_time = 0.0
        self._target: Optional[Tuple[float, float]] = None  # (target, time_constant)
        self._pending: List[Tuple[float, float, float]] = []  # (start_time, target, time_constant)
        self._last_value = self._clamp(self.default_value)

    @property
    def value(self) -> float:
        """Most recently computed value"""
        return self._last_value

    @value.setter
    def value(self, new_value: float) -> None:
        """Set the value immediately, cancelling any scheduled automation"""
        self._pending.clear()
        self._target = None
        self._base_value = float(new_value)
        self._last_value = self._clamp(self._base_value)

    @property
    def has_automation(self) -> bool:
        return self._target is not None or bool(self._pending)

    def set_target_at_time(self, target: float, start_time: float, time_constant: float) -> None:
        """Approach ``target`` exponentially from ``start_time`` with the given time constant"""
        if time_constant < 0:
            raise ValueError(f"time_constant must be non-negative, got {time_constant}")
        self._pending.append((float(start_time), float(target), float(time_constant)))
        # stable: equal start times keep issue order
        self._pending.sort(key=lambda event: event[0])

    def compute(self, start_time: float, frames: int, sample_rate: int) -> np.ndarray:
        """Per-sample values for a block starting at ``start_time``"""
        if frames <= 0:
            return np.empty(0, dtype=np.float64)

        if not self.has_automation:
            return np.full(frames, self._last_value, dtype=np.float64)

        times = start_time + np.arange(frames, dtype=np.float64) / sample_rate
        out = np.empty(frames, dtype=np.float64)
        cursor = 0

        while self._pending and self._pending[0][0] <= times[-1]:
            event_time, target, time_constant = self._pending.pop(0)
            index = int(np.searchsorted(times, event_time, side="left"))
            if index > cursor:
                out[cursor:index] = self._curve(times[cursor:index])
                cursor = index

            self._base_value = float(self._curve(np.array([event_time]))[0])
            self._base_time = event_time
            if time_constant == 0:
                self._base_value = target
                self._target = None
            else:
                self._target = (target, time_constant)

        if cursor < frames:
            out[cursor:] = self._curve(times[cursor:])

        np.clip(out, self.min_value, self.max_value, out=out)
        self._last_value = float(out[-1])
        return out

    def _curve(self, times: np.ndarray) -> np.ndarray:
        if self._target is None:
            return np.full(times.shape, self._base_value, dtype=np.float64)
        target, time_constant = self._target
        return target + (self._base_value - target) * np.exp(-(times - self._base_time) / time_constant)

    def _clamp(self, value: float) -> float:
        return min(max(value, self.min_value), self.max_value)


class SourceNode:
    """
    One-shot sample buffer player with a detune parameter in cents.

    A node can be started once and halted once; a second ``stop`` raises
    ``InvalidNodeStateError``. ``on_ended`` fires once when playback runs off
    the end of the buffer, never on an explicit stop.
    """

    UNSCHEDULED = "unscheduled"
    PLAYING = "playing"
    STOPPED = "stopped"
    ENDED = "ended"

    def __init__(self, samples: np.ndarray, sample_rate: int, max_detune: float = 1200.0):
        self.buffer = samples
        self.sample_rate = sample_rate
        self.detune = AudioParam("detune", 0.0, -max_detune, max_detune)
        self.on_ended: Optional[Callable[[], None]] = None

        self._position = 0.0
        self._state = self.UNSCHEDULED
        self._ended_pending = False

    @property
    def channels(self) -> int:
        return self.buffer.shape[0]

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state == self.PLAYING

    def start(self, offset: float = 0.0) -> None:
        """Begin playback ``offset`` seconds into the buffer"""
        if self._state != self.UNSCHEDULED:
            raise InvalidNodeStateError(f"Source already started (state={self._state})")
        self._position = max(0.0, float(offset)) * self.sample_rate
        self._state = self.PLAYING

    def stop(self) -> None:
        """Halt playback"""
        if self._state == self.UNSCHEDULED:
            raise InvalidNodeStateError("Source was never started")
        if self._state in (self.STOPPED, self.ENDED):
            raise InvalidNodeStateError(f"Source already halted (state={self._state})")
        self._state = self.STOPPED
        self._ended_pending = False

    def process(self, start_time: float, frames: int, sample_rate: int) -> np.ndarray:
        """Render ``frames`` samples, linearly interpolating at the detuned rate"""
        out = np.zeros((self.channels, frames), dtype=np.float32)
        if self._state != self.PLAYING:
            return out

        length = self.buffer.shape[1]
        rates = np.power(2.0, self.detune.compute(start_time, frames, sample_rate) / 1200.0)
        positions = self._position + np.concatenate(([0.0], np.cumsum(rates[:-1])))
        count = int(np.count_nonzero(positions < length))

        if count:
            head = positions[:count]
            index = head.astype(np.int64)
            frac = (head - index).astype(np.float32)
            current = self.buffer[:, index]
            if np.any(frac):
                following = self.buffer[:, np.minimum(index + 1, length - 1)]
                out[:, :count] = current + (following - current) * frac
            else:
                out[:, :count] = current

        self._position = float(positions[-1] + rates[-1])
        if self._position >= length:
            self._state = self.ENDED
            self._ended_pending = True
        return out

    def dispatch_ended(self) -> None:
        """Fire ``on_ended`` if playback reached the end during the last block"""
        if not self._ended_pending:
            return
        self._ended_pending = False
        callback, self.on_ended = self.on_ended, None
        if callback is not None:
            callback()


class DelayNode:
    """
    Variable delay line backed by a circular buffer.

    ``read`` must be called before ``write`` for each block; delays shorter
    than the block are not supported, which the graph guarantees by clamping
    delays in the feedback cycle to one render quantum.
    """

    def __init__(self, sample_rate: int, channels: int, max_delay_time: float = 5.0, max_block: int = 128):
        self.sample_rate = sample_rate
        self.max_delay_time = max_delay_time
        self.delay_time = AudioParam("delayTime", 0.0, 0.0, max_delay_time)

        self._capacity = int(math.ceil(max_delay_time * sample_rate)) + 2 * max_block + 2
        self._buffer = np.zeros((channels, self._capacity), dtype=np.float32)
        self._write_pos = 0

    @property
    def channels(self) -> int:
        return self._buffer.shape[0]

    def read(self, delay_frames: np.ndarray) -> np.ndarray:
        """Read one block delayed by ``delay_frames`` samples (per sample)"""
        frames = delay_frames.shape[0]
        read_pos = self._write_pos + np.arange(frames, dtype=np.float64) - delay_frames
        index = np.floor(read_pos).astype(np.int64)
        frac = (read_pos - index).astype(np.float32)

        first = self._buffer[:, index % self._capacity]
        if not np.any(frac):
            return first.copy()
        second = self._buffer[:, (index + 1) % self._capacity]
        return first + (second - first) * frac

    def write(self, block: np.ndarray) -> None:
        frames = block.shape[1]
        slots = (self._write_pos + np.arange(frames)) % self._capacity
        self._buffer[:, slots] = block
        self._write_pos += frames


class GainNode:
    """Per-sample gain stage"""

    def __init__(self, gain: float = 1.0):
        self.gain = AudioParam("gain", gain, -3.4e38, 3.4e38)

    def process(self, block: np.ndarray, start_time: float, sample_rate: int) -> np.ndarray:
        return (block * self.gain.compute(start_time, block.shape[1], sample_rate)).astype(np.float32)


class AnalyserNode:
    """
    Read-only tap on the live post-mix signal.

    Keeps the most recent ``fft_size`` samples (down-mixed to mono) and serves
    time-domain and frequency-domain snapshots. Reads only copy the ring
    buffer under a short lock and never touch the render graph.
    """

    def __init__(
        self,
        fft_size: int = 2048,
        smoothing_time_constant: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ):
        if fft_size < 32 or fft_size > 32768 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two in [32, 32768], got {fft_size}")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be below max_decibels")

        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

        self._ring = np.zeros(fft_size, dtype=np.float32)
        self._write_pos = 0
        self._lock = threading.Lock()

        self._window = windows.blackman(fft_size, sym=False)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)
        self._smoothing_lock = threading.Lock()

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def process(self, block: np.ndarray) -> np.ndarray:
        """Capture a block and pass it through unchanged"""
        mono = block.mean(axis=0) if block.shape[0] > 1 else block[0]
        mono = mono[-self.fft_size:]
        frames = mono.shape[0]

        with self._lock:
            slots = (self._write_pos + np.arange(frames)) % self.fft_size
            self._ring[slots] = mono
            self._write_pos = (self._write_pos + frames) % self.fft_size
        return block

    def get_float_time_domain_data(self) -> np.ndarray:
        """Latest ``fft_size`` samples, oldest first"""
        with self._lock:
            return np.roll(self._ring, -self._write_pos)

    def get_byte_time_domain_data(self) -> np.ndarray:
        """Time-domain snapshot scaled to unsigned bytes (128 = silence)"""
        samples = self.get_float_time_domain_data()
        return np.clip(np.floor(128.0 * (samples + 1.0)), 0, 255).astype(np.uint8)

    def get_float_frequency_data(self) -> np.ndarray:
        """Smoothed magnitude spectrum in decibels"""
        samples = self.get_float_time_domain_data().astype(np.float64)
        spectrum = np.fft.rfft(samples * self._window)[: self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size

        with self._smoothing_lock:
            tau = self.smoothing_time_constant
            self._smoothed = tau * self._smoothed + (1.0 - tau) * magnitude
            smoothed = self._smoothed.copy()

        with np.errstate(divide="ignore"):
            decibels = 20.0 * np.log10(smoothed)
        return decibels.astype(np.float32)

    def get_byte_frequency_data(self) -> np.ndarray:
        """Spectrum mapped from [min_decibels, max_decibels] onto 0..255"""
        decibels = self.get_float_frequency_data().astype(np.float64)
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.nan_to_num((decibels - self.min_decibels) * scale, neginf=0.0)
        return np.clip(np.floor(scaled), 0, 255).astype(np.uint8)
