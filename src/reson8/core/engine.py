"""
Reson8 Effects Engine
Owns the loaded track, the live signal graph and the playback session lifecycle
"""

import asyncio
import logging
import math
import threading
import time
from functools import partial
from typing import Callable, Optional

from .buffers import playback_samples
from .config import Reson8Settings, get_settings
from .context import RealtimeContext
from .decoder import decode_audio
from .encoder import encode_wav
from .environment import resolve_output_mode
from .exceptions import InvalidNodeStateError, NoSourceError, RenderError
from .graph import SignalGraph
from .logging import audio_logger, playback_logger
from .models import (
    PITCH_MAX_CENTS,
    DecodedAudio,
    EffectParameters,
    EncodedContainer,
    PlaybackSession,
    PlaybackStatus,
    RenderedAudio,
)
from .nodes import AnalyserNode, SourceNode
from .offline import OfflineContext

logger = logging.getLogger(__name__)


def compute_decay_tail(
    delay_seconds: float,
    feedback: float,
    threshold_db: float = -60.0,
    max_tail_seconds: float = 30.0
) -> float:
    """
    Time for the echo train to decay below ``threshold_db``.

    The n-th repeat arrives at ``n * delay`` with amplitude ``feedback ** (n - 1)``.
    """
    if feedback <= 0.0 or delay_seconds <= 0.0:
        return 0.0
    if feedback >= 1.0:
        return max_tail_seconds

    threshold = 10.0 ** (threshold_db / 20.0)
    repeats = 1.0 + math.log(threshold) / math.log(feedback)
    return min(max(delay_seconds * repeats, 0.0), max_tail_seconds)


class EffectsEngine:
    """
    Real-time pitch/echo/reverse engine with offline export.

    One live graph (delay line, feedback gain, mix, analyser) persists for the
    lifetime of the engine; each playback session only creates a new source
    node. All state transitions happen under a re-entrant lock shared with the
    live context's render path.
    """

    def __init__(self, settings: Optional[Reson8Settings] = None, output_mode: Optional[str] = None):
        """
        Initialize effects engine

        Args:
            settings: Application settings (defaults to cached settings)
            output_mode: Override for AUDIO_OUTPUT_MODE (auto, device, headless, manual)
        """
        self.settings = settings or get_settings()
        self.output_mode = resolve_output_mode(output_mode or self.settings.AUDIO_OUTPUT_MODE)

        self._lock = threading.RLock()
        self._source_audio: Optional[DecodedAudio] = None
        self._session: Optional[PlaybackSession] = None
        self._paused_offset = 0.0
        self._status = PlaybackStatus.IDLE

        self._analyser = AnalyserNode(
            fft_size=self.settings.ANALYSER_FFT_SIZE,
            smoothing_time_constant=self.settings.ANALYSER_SMOOTHING,
            min_decibels=self.settings.ANALYSER_MIN_DECIBELS,
            max_decibels=self.settings.ANALYSER_MAX_DECIBELS,
        )
        self._context: Optional[RealtimeContext] = None
        self._graph: Optional[SignalGraph] = None

        logger.info(f"EffectsEngine initialized: output_mode={self.output_mode}")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def analyser(self) -> AnalyserNode:
        """Read-only tap on the post-mix live signal"""
        return self._analyser

    @property
    def source(self) -> Optional[DecodedAudio]:
        return self._source_audio

    @property
    def status(self) -> PlaybackStatus:
        return self._status

    @property
    def is_playing(self) -> bool:
        return self._status == PlaybackStatus.PLAYING

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    @property
    def paused_offset(self) -> float:
        return self._paused_offset

    @property
    def context(self) -> Optional[RealtimeContext]:
        return self._context

    @property
    def graph(self) -> Optional[SignalGraph]:
        return self._graph

    @property
    def current_time(self) -> float:
        """Live audio clock in seconds (0 before anything is loaded)"""
        context = self._context
        return context.current_time if context is not None else 0.0

    @property
    def position(self) -> float:
        """Elapsed playback time of the current or paused session"""
        with self._lock:
            session = self._session
            if session is not None and session.running:
                return self._paused_offset + self.current_time - session.start_time
            return self._paused_offset

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_source(self, data: bytes, name: str = None) -> DecodedAudio:
        """
        Decode audio bytes and make them the current track

        Args:
            data: Encoded audio file contents
            name: Optional file name for logging

        Returns:
            The decoded track

        Raises:
            DecodeError: if the bytes cannot be decoded; the previous track stays current
        """
        audio = decode_audio(data, name=name)
        self.load_decoded(audio)
        return audio

    def load_decoded(self, audio: DecodedAudio) -> None:
        """Install already-decoded audio, stopping any live session"""
        if not self.settings.validate_sample_rate(audio.sample_rate):
            logger.warning(f"Unusual sample rate {audio.sample_rate}Hz; output device may reject it")

        with self._lock:
            self._stop_locked()
            self._source_audio = audio
            retired = self._ensure_live_graph(audio.sample_rate, audio.channels)

        if retired is not None:
            retired.close()

        logger.info(
            f"Loaded source: {audio.duration:.2f}s, {audio.sample_rate}Hz, {audio.channels}ch"
        )

    def _ensure_live_graph(self, sample_rate: int, channels: int) -> Optional[RealtimeContext]:
        """Make the live graph match the track layout; returns a context to close"""
        context = self._context
        if context is not None and context.sample_rate == sample_rate:
            if self._graph is None or self._graph.channels != channels:
                self._graph = self._build_graph(context, channels)
            return None

        self._context = RealtimeContext(
            sample_rate,
            channels=self.settings.OUTPUT_CHANNELS,
            buffer_size=self.settings.OUTPUT_BUFFER_SIZE,
            render_quantum=self.settings.RENDER_QUANTUM,
            mode=self.output_mode,
            lock=self._lock,
        )
        self._graph = self._build_graph(self._context, channels)
        return context

    def _build_graph(self, context, channels: int) -> SignalGraph:
        return SignalGraph(
            context,
            channels,
            max_delay_time=self.settings.MAX_DELAY_SECONDS,
            analyser=self._analyser,
        )

    # ------------------------------------------------------------------
    # Live playback
    # ------------------------------------------------------------------

    def play(self, params: EffectParameters, on_ended: Optional[Callable[[], None]] = None) -> PlaybackSession:
        """
        Start a playback session from the paused offset

        A running session is stopped first, so calling play twice behaves
        like stop followed by play.

        Args:
            params: Effect parameters for the new session
            on_ended: Called once when the source plays to its end

        Returns:
            The new playback session

        Raises:
            NoSourceError: if no audio is loaded
        """
        with self._lock:
            audio = self._source_audio
            if audio is None:
                raise NoSourceError("play")

            if self._session is not None and self._session.running:
                self._stop_locked()
            if self._graph is None:
                self._ensure_live_graph(audio.sample_rate, audio.channels)

            source = SourceNode(
                playback_samples(audio, params.reversed),
                audio.sample_rate,
                max_detune=PITCH_MAX_CENTS
            )
            source.detune.value = params.pitch_shift

            self._graph.apply_parameters(params)
            self._graph.connect_source(source)
            source.start(self._paused_offset)

            session = PlaybackSession(
                source=source,
                params=params,
                start_time=self._context.current_time,
                on_ended=on_ended,
            )
            self._session = session
            source.on_ended = partial(self._handle_source_ended, session)

            self._set_status(PlaybackStatus.PLAYING, session)
            playback_logger.log_parameter_update(
                pitch_cents=params.pitch_shift,
                echo_delay_s=params.echo_delay,
                echo_feedback=params.echo_feedback,
                smoothed=False
            )

            self._context.resume()
            return session

    def pause(self) -> None:
        """Halt the running session and keep its elapsed time as the resume offset"""
        with self._lock:
            session = self._session
            if session is None or not session.running:
                return

            self._halt_source(session.source)
            self._paused_offset += self._context.current_time - session.start_time
            session.running = False
            self._graph.disconnect_source(session.source)
            self._set_status(PlaybackStatus.PAUSED, session)

    def stop(self) -> None:
        """Halt any session and rewind to the start"""
        with self._lock:
            self._stop_locked()

    def restart(
        self,
        params: EffectParameters,
        on_ended: Optional[Callable[[], None]] = None
    ) -> PlaybackSession:
        """Stop the current session and start a new one once teardown is complete"""
        with self._lock:
            self._stop_locked()
            return self.play(params, on_ended)

    def _stop_locked(self) -> None:
        session = self._session
        if session is not None:
            session.source.on_ended = None
            self._halt_source(session.source)
            session.running = False
            if self._graph is not None:
                self._graph.disconnect_source(session.source)
            self._session = None

        self._paused_offset = 0.0
        if self._status != PlaybackStatus.IDLE:
            self._set_status(PlaybackStatus.IDLE, session)

    def _halt_source(self, source: SourceNode) -> None:
        try:
            source.stop()
        except InvalidNodeStateError as e:
            logger.debug(f"Ignoring stop on halted source: {e}")

    def _handle_source_ended(self, session: PlaybackSession) -> None:
        """Natural end of the source; runs on the render thread"""
        with self._lock:
            if self._session is not session or not session.running:
                return

            session.running = False
            self._paused_offset = 0.0
            self._graph.disconnect_source(session.source)
            self._set_status(PlaybackStatus.IDLE, session)
            callback = session.on_ended

        if callback is not None:
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in playback ended callback: {e}")

    def _set_status(self, new_status: PlaybackStatus, session: Optional[PlaybackSession]) -> None:
        old_status = self._status
        self._status = new_status
        playback_logger.log_state_change(
            session_id=str(session.session_id) if session is not None else None,
            old_state=old_status.value,
            new_state=new_status.value,
            offset_s=self._paused_offset
        )

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def update_parameters(self, params: EffectParameters) -> None:
        """
        Glide the live graph towards new effect values

        Delay time and feedback gain always follow; detune follows only while
        a session is running. The reversal flag is never applied here.
        """
        with self._lock:
            if self._graph is None:
                return

            now = self._context.current_time
            time_constant = self.settings.PARAMETER_SMOOTHING_SECONDS
            self._graph.apply_parameters(params, start_time=now, time_constant=time_constant)

            session = self._session
            if session is not None and session.running:
                session.source.detune.set_target_at_time(params.pitch_shift, now, time_constant)
                session.params = session.params.model_copy(update={
                    "pitch_shift": params.pitch_shift,
                    "echo_delay": params.echo_delay,
                    "echo_feedback": params.echo_feedback,
                })

            playback_logger.log_parameter_update(
                pitch_cents=params.pitch_shift,
                echo_delay_s=params.echo_delay,
                echo_feedback=params.echo_feedback,
                smoothed=True
            )

    # ------------------------------------------------------------------
    # Offline rendering and export
    # ------------------------------------------------------------------

    def decay_tail_seconds(self, params: EffectParameters) -> float:
        """Extra render time appended after the source for the echo to ring out"""
        if params.echo_feedback <= 0.0:
            return 0.0

        if self.settings.EXPORT_TAIL_MODE == "computed":
            min_delay = self.settings.RENDER_QUANTUM / self._source_audio.sample_rate if self._source_audio else 0.0
            return compute_decay_tail(
                max(params.echo_delay, min_delay),
                params.echo_feedback,
                threshold_db=self.settings.EXPORT_TAIL_THRESHOLD_DB,
                max_tail_seconds=self.settings.EXPORT_MAX_TAIL_SECONDS
            )
        return self.settings.EXPORT_DECAY_TAIL_SECONDS

    async def render_offline(self, params: EffectParameters) -> RenderedAudio:
        """
        Render the loaded track through a fresh graph at full speed

        Args:
            params: Effect parameters for the render

        Returns:
            Source duration plus decay tail, at the source rate and channel count

        Raises:
            NoSourceError: if no audio is loaded
            RenderError: if the render backend fails
        """
        with self._lock:
            audio = self._source_audio
        if audio is None:
            raise NoSourceError("render_offline")

        tail_seconds = self.decay_tail_seconds(params)
        length = audio.frames + int(round(tail_seconds * audio.sample_rate))

        context = OfflineContext(audio.channels, length, audio.sample_rate, self.settings.RENDER_QUANTUM)
        graph = SignalGraph(context, audio.channels, max_delay_time=self.settings.MAX_DELAY_SECONDS)

        source = SourceNode(
            playback_samples(audio, params.reversed),
            audio.sample_rate,
            max_detune=PITCH_MAX_CENTS
        )
        source.detune.value = params.pitch_shift
        graph.apply_parameters(params)
        graph.connect_source(source)
        source.start(0.0)

        audio_logger.log_processing_start(
            operation="OfflineRender",
            frames=length,
            tail_seconds=tail_seconds,
            pitch_cents=params.pitch_shift,
            reversed=params.reversed
        )

        start_time = time.time()
        try:
            rendered = await context.start_rendering()
        except RenderError as e:
            audio_logger.log_processing_error(operation="OfflineRender", error=str(e))
            raise

        audio_logger.log_render_stats(
            audio_duration_s=rendered.duration,
            processing_time_s=time.time() - start_time,
            frames=rendered.frames,
            channels=rendered.channels
        )
        return rendered

    async def export_audio(self, params: EffectParameters) -> EncodedContainer:
        """Render offline and encode the result as a 16-bit PCM WAV container"""
        rendered = await self.render_offline(params)

        start_time = time.time()
        container = await asyncio.to_thread(encode_wav, rendered)
        audio_logger.log_processing_complete(
            operation="WavEncode",
            duration_ms=(time.time() - start_time) * 1000,
            size_bytes=len(container)
        )
        return container

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop playback and release the output driver"""
        with self._lock:
            self._stop_locked()
            context = self._context
            self._context = None
            self._graph = None

        if context is not None:
            context.close()
        logger.info("EffectsEngine closed")
