"""
Reson8 Signal Graph
The dry + echo topology shared by live playback and offline export

    source ──────────────────────────► mix ──► [analyser] ──► destination
       │                                ▲
       └──► delay ──────────────────────┘
              ▲  │
              │  ▼
            feedback
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from .context import BaseAudioContext
from .models import EffectParameters
from .nodes import AnalyserNode, DelayNode, GainNode, SourceNode

logger = logging.getLogger(__name__)


class SignalGraph:
    """
    One instance of the canonical effect topology bound to a context.

    The delay line sits inside the feedback cycle, so its effective delay is
    never shorter than one render quantum.
    """

    def __init__(
        self,
        context: BaseAudioContext,
        channels: int,
        max_delay_time: float = 5.0,
        analyser: Optional[AnalyserNode] = None,
    ):
        self.context = context
        self.channels = channels
        self.sample_rate = context.sample_rate
        self.quantum_frames = context.render_quantum

        self.source: Optional[SourceNode] = None
        self.delay = DelayNode(
            context.sample_rate,
            channels,
            max_delay_time=max_delay_time,
            max_block=context.render_quantum
        )
        self.feedback = GainNode(0.0)
        self.mix = GainNode(1.0)
        self.analyser = analyser

        self._connections: List[Tuple[str, str]] = []
        self._wire()
        context.attach(self)

    @property
    def connections(self) -> List[Tuple[str, str]]:
        """Current edges as (from, to) node names"""
        return list(self._connections)

    def _wire(self) -> None:
        self._connections = [
            ("delay", "feedback"),
            ("feedback", "delay"),
            ("delay", "mix"),
        ]
        if self.analyser is not None:
            self._connections += [("mix", "analyser"), ("analyser", "destination")]
        else:
            self._connections.append(("mix", "destination"))

    def connect_source(self, source: SourceNode) -> None:
        """Wire a source into the dry and wet paths, replacing any previous one"""
        if source.channels != self.channels:
            raise ValueError(f"Source has {source.channels} channels, graph expects {self.channels}")
        self.disconnect_source()
        self.source = source
        self._connections = [("source", "mix"), ("source", "delay")] + self._connections

    def disconnect_source(self, source: Optional[SourceNode] = None) -> None:
        if source is not None and source is not self.source:
            return
        self.source = None
        self._connections = [edge for edge in self._connections if edge[0] != "source"]

    def apply_parameters(
        self,
        params: EffectParameters,
        start_time: Optional[float] = None,
        time_constant: Optional[float] = None,
    ) -> None:
        """
        Push delay time and feedback gain into the graph.

        Without a time constant the values jump immediately; with one they
        approach the new values exponentially from ``start_time``.
        """
        if time_constant is None:
            self.delay.delay_time.value = params.echo_delay
            self.feedback.gain.value = params.echo_feedback
            return

        if start_time is None:
            start_time = self.context.current_time
        self.delay.delay_time.set_target_at_time(params.echo_delay, start_time, time_constant)
        self.feedback.gain.set_target_at_time(params.echo_feedback, start_time, time_constant)

    def process_quantum(self, start_time: float, frames: int) -> np.ndarray:
        """Render one block of at most one render quantum"""
        if frames > self.quantum_frames:
            raise ValueError(f"Block of {frames} frames exceeds render quantum {self.quantum_frames}")

        source = self.source
        if source is not None and source.is_playing:
            dry = source.process(start_time, frames, self.sample_rate)
        else:
            dry = np.zeros((self.channels, frames), dtype=np.float32)

        delay_frames = self.delay.delay_time.compute(start_time, frames, self.sample_rate) * self.sample_rate
        np.maximum(delay_frames, self.quantum_frames, out=delay_frames)

        wet = self.delay.read(delay_frames)
        returned = self.feedback.process(wet, start_time, self.sample_rate)
        self.delay.write(dry + returned)

        mixed = self.mix.process(dry + wet, start_time, self.sample_rate)
        if self.analyser is not None:
            self.analyser.process(mixed)

        if source is not None:
            source.dispatch_ended()
        return mixed
