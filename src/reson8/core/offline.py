"""
Reson8 Offline Rendering
Runs a signal graph at full speed into a fixed-length render target
"""

import asyncio

import numpy as np

from .context import BaseAudioContext
from .exceptions import InvalidNodeStateError, RenderError
from .models import RenderedAudio


class OfflineContext(BaseAudioContext):
    """Non-real-time context rendering exactly ``length`` frames"""

    def __init__(self, channels: int, length: int, sample_rate: int, render_quantum: int = 128):
        super().__init__(sample_rate, render_quantum)
        if channels < 1:
            raise ValueError(f"Invalid channel count: {channels}")
        if length < 0:
            raise ValueError(f"Invalid render length: {length}")

        self.channels = channels
        self.length = length
        self._started = False

    @property
    def duration(self) -> float:
        return self.length / self.sample_rate

    async def start_rendering(self) -> RenderedAudio:
        """Render the whole target in a worker thread and return the samples"""
        if self._started:
            raise InvalidNodeStateError("Offline rendering already started")
        self._started = True

        try:
            samples = await asyncio.to_thread(self._render_all)
        except Exception as e:
            raise RenderError(f"Offline render failed: {e}") from e

        return RenderedAudio(samples=samples, sample_rate=self.sample_rate)

    def _render_all(self) -> np.ndarray:
        if self.graph is None:
            return np.zeros((self.channels, self.length), dtype=np.float32)

        samples = self.render(self.length)
        if samples.shape[0] != self.channels:
            raise RenderError(
                f"Graph produced {samples.shape[0]} channels, target expects {self.channels}"
            )
        return samples
