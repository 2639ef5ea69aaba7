"""
Reson8 Audio Contexts
Render clock plus the real-time output driver for the live signal graph
"""

import logging
import threading
import time
from typing import TYPE_CHECKING, Optional

import numpy as np

try:
    import pyaudio
    PYAUDIO_AVAILABLE = True
except ImportError:
    pyaudio = None
    PYAUDIO_AVAILABLE = False

from .exceptions import InvalidNodeStateError

if TYPE_CHECKING:
    from .graph import SignalGraph

logger = logging.getLogger(__name__)


class BaseAudioContext:
    """
    Drives a signal graph one render quantum at a time.

    The context clock is derived from rendered frames, so ``current_time``
    is monotonic and identical in meaning for live and offline rendering.
    """

    def __init__(self, sample_rate: int, render_quantum: int = 128, lock: Optional[threading.RLock] = None):
        if sample_rate <= 0:
            raise ValueError(f"Invalid sample rate: {sample_rate}")
        if render_quantum <= 0:
            raise ValueError(f"Invalid render quantum: {render_quantum}")

        self.sample_rate = sample_rate
        self.render_quantum = render_quantum
        self.lock = lock or threading.RLock()
        self.graph: Optional["SignalGraph"] = None
        self._frames_rendered = 0

    @property
    def current_time(self) -> float:
        """Audio clock in seconds"""
        return self._frames_rendered / self.sample_rate

    @property
    def frames_rendered(self) -> int:
        return self._frames_rendered

    def attach(self, graph: "SignalGraph") -> None:
        with self.lock:
            self.graph = graph

    def render(self, frames: int) -> np.ndarray:
        """Render ``frames`` samples of graph output as (channels, frames)"""
        with self.lock:
            channels = self.graph.channels if self.graph is not None else 1
            out = np.zeros((channels, frames), dtype=np.float32)
            position = 0
            while position < frames:
                count = min(self.render_quantum, frames - position)
                if self.graph is not None:
                    out[:, position:position + count] = self.graph.process_quantum(self.current_time, count)
                self._frames_rendered += count
                position += count
            return out


class RealtimeContext(BaseAudioContext):
    """
    Live context feeding an output device.

    Modes:
        device   - PyAudio output stream, rendered from the stream callback
        headless - background thread rendering at real-time pace, no device
        manual   - nothing renders until ``advance`` is called
    """

    OUTPUT_MODES = ("device", "headless", "manual")

    def __init__(
        self,
        sample_rate: int,
        channels: int = 2,
        buffer_size: int = 512,
        render_quantum: int = 128,
        mode: str = "manual",
        lock: Optional[threading.RLock] = None,
    ):
        super().__init__(sample_rate, render_quantum, lock)
        if mode not in self.OUTPUT_MODES:
            raise ValueError(f"Unknown output mode '{mode}', expected one of {self.OUTPUT_MODES}")
        if mode == "device" and not PYAUDIO_AVAILABLE:
            raise RuntimeError("PyAudio is required for device output")

        self.output_channels = channels
        self.buffer_size = buffer_size
        self.mode = mode
        self.state = "suspended"

        self._pyaudio = None
        self._output_stream = None
        self._render_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        logger.info(f"RealtimeContext created: {sample_rate}Hz, {buffer_size} buffer, {channels}ch, mode={mode}")

    def resume(self) -> None:
        """Start the output driver if it is not already running"""
        if self.state == "closed":
            raise InvalidNodeStateError("Context is closed")
        if self.state == "running":
            return

        if self.mode == "device":
            self._open_device_stream()
        self.state = "running"

        if self.mode == "headless":
            self._stop_event.clear()
            self._render_thread = threading.Thread(
                target=self._headless_loop,
                name=f"Reson8Render-{id(self):x}",
                daemon=True
            )
            self._render_thread.start()

        logger.debug(f"RealtimeContext resumed ({self.mode})")

    def advance(self, seconds: float) -> np.ndarray:
        """Render ``seconds`` of output synchronously (manual driving)"""
        if self.state == "closed":
            raise InvalidNodeStateError("Context is closed")
        return self.render_output(int(round(seconds * self.sample_rate)))

    def render_output(self, frames: int) -> np.ndarray:
        """Render graph output mapped to the device layout as (frames, channels)"""
        return self._to_output(self.render(frames))

    def close(self) -> None:
        """Stop the output driver and release the device"""
        if self.state == "closed":
            return

        self._stop_event.set()
        if self._render_thread and self._render_thread.is_alive():
            self._render_thread.join(timeout=2.0)
        self._render_thread = None

        try:
            if self._output_stream:
                self._output_stream.stop_stream()
                self._output_stream.close()
                self._output_stream = None
            if self._pyaudio:
                self._pyaudio.terminate()
                self._pyaudio = None
        except Exception as e:
            logger.error(f"Error closing audio output: {e}")

        self.state = "closed"
        logger.info("RealtimeContext closed")

    def _to_output(self, block: np.ndarray) -> np.ndarray:
        channels = block.shape[0]
        if channels == self.output_channels:
            mapped = block
        elif channels == 1:
            mapped = np.repeat(block, self.output_channels, axis=0)
        elif channels > self.output_channels:
            mapped = block[:self.output_channels]
        else:
            mapped = np.zeros((self.output_channels, block.shape[1]), dtype=np.float32)
            mapped[:channels] = block
        return np.ascontiguousarray(mapped.T, dtype=np.float32)

    def _open_device_stream(self) -> None:
        self._pyaudio = pyaudio.PyAudio()
        self._output_stream = self._pyaudio.open(
            format=pyaudio.paFloat32,
            channels=self.output_channels,
            rate=self.sample_rate,
            output=True,
            frames_per_buffer=self.buffer_size,
            stream_callback=self._audio_callback
        )
        self._output_stream.start_stream()

    def _audio_callback(self, in_data, frame_count, time_info, status):
        """PyAudio stream callback for real-time audio output"""
        if status:
            logger.warning(f"Audio output status: {status}")

        try:
            return (self.render_output(frame_count).tobytes(), pyaudio.paContinue)
        except Exception as e:
            logger.error(f"Error in audio callback: {e}")
            silence = np.zeros((frame_count, self.output_channels), dtype=np.float32)
            return (silence.tobytes(), pyaudio.paComplete)

    def _headless_loop(self) -> None:
        """Render at real-time pace without an output device"""
        period = self.buffer_size / self.sample_rate
        deadline = time.monotonic()
        try:
            while not self._stop_event.is_set():
                self.render_output(self.buffer_size)
                deadline += period
                self._stop_event.wait(max(0.0, deadline - time.monotonic()))
        except Exception as e:
            logger.error(f"Error in headless render loop: {e}")
            # Allow resume() to start a fresh loop
            if self.state == "running":
                self.state = "suspended"
        finally:
            logger.debug("Headless render loop exited")
