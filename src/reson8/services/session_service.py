"""
Reson8 Playback Session Service
Caller-side effect state and transport controls on top of the effects engine
"""

import asyncio
import logging
from typing import Optional

from pydantic import BaseModel

from ..core.config import Reson8Settings, get_settings
from ..core.engine import EffectsEngine
from ..core.exceptions import DecodeError, NoSourceError
from ..core.models import EffectParameters
from ..core.result import Result

logger = logging.getLogger(__name__)


class LoadedTrack(BaseModel):
    """Summary of the currently loaded track"""
    name: Optional[str] = None
    duration: float
    sample_rate: int
    channels: int
    frames: int


class SessionState(BaseModel):
    """Snapshot of transport and effect state"""
    status: str
    is_playing: bool
    position: float
    track: Optional[LoadedTrack] = None
    effects: EffectParameters


class PlaybackSessionService:
    """
    High-level transport controls for a single listener

    Owns the current EffectParameters and routes every change to the engine:
    sliders glide through update_parameters, reversal restarts a running
    session.
    """

    def __init__(self, engine: EffectsEngine, settings: Optional[Reson8Settings] = None):
        self.engine = engine
        self.settings = settings or get_settings()
        self._params = EffectParameters()
        self._track: Optional[LoadedTrack] = None

        logger.info("PlaybackSessionService initialized")

    @property
    def effects(self) -> EffectParameters:
        return self._params

    async def load_file(self, filename: str, data: bytes) -> Result[LoadedTrack]:
        """
        Validate and load an uploaded audio file

        Args:
            filename: Original file name, used for the extension check
            data: File contents

        Returns:
            Result with the loaded track summary
        """
        if not self.settings.validate_upload_extension(filename or ""):
            return Result.err(
                f"Unsupported file type. Allowed: {self.settings.SUPPORTED_UPLOAD_EXTENSIONS}",
                "UNSUPPORTED_FORMAT"
            )
        if len(data) > self.settings.MAX_UPLOAD_SIZE:
            return Result.err(
                f"File exceeds maximum upload size of {self.settings.MAX_UPLOAD_SIZE} bytes",
                "FILE_TOO_LARGE"
            )

        try:
            audio = await asyncio.to_thread(self.engine.load_source, data, name=filename)
        except DecodeError as e:
            logger.warning(f"Could not load '{filename}': {e}")
            return Result.err(str(e), "DECODE_ERROR")

        self._track = LoadedTrack(
            name=filename,
            duration=audio.duration,
            sample_rate=audio.sample_rate,
            channels=audio.channels,
            frames=audio.frames
        )
        return Result.ok(self._track)

    def toggle_play(self) -> Result[SessionState]:
        """Pause when playing, otherwise play (resuming from the paused offset)"""
        if self.engine.is_playing:
            self.engine.pause()
            return Result.ok(self.state())

        try:
            self.engine.play(self._params, on_ended=self._on_playback_ended)
        except NoSourceError as e:
            return Result.err(str(e), "NO_SOURCE")
        return Result.ok(self.state())

    def stop(self) -> SessionState:
        self.engine.stop()
        return self.state()

    def set_effects(
        self,
        pitch_shift: Optional[int] = None,
        echo_delay: Optional[float] = None,
        echo_feedback: Optional[float] = None
    ) -> EffectParameters:
        """Apply a partial update of the continuous controls"""
        update = {
            "pitch_shift": pitch_shift,
            "echo_delay": echo_delay,
            "echo_feedback": echo_feedback,
        }
        values = self._params.model_dump()
        values.update({key: value for key, value in update.items() if value is not None})

        self._params = EffectParameters.model_validate(values)
        self.engine.update_parameters(self._params)
        return self._params

    def reset_effects(self) -> EffectParameters:
        """Restore pitch 0, no echo, forward playback"""
        was_reversed = self._params.reversed
        self._params = EffectParameters()

        if was_reversed and self.engine.is_playing:
            self.engine.restart(self._params, on_ended=self._on_playback_ended)
        else:
            self.engine.update_parameters(self._params)
        return self._params

    def toggle_reverse(self) -> EffectParameters:
        """Flip playback direction, restarting a running session"""
        self._params = self._params.model_copy(update={"reversed": not self._params.reversed})

        if self.engine.is_playing:
            self.engine.restart(self._params, on_ended=self._on_playback_ended)
        return self._params

    def state(self) -> SessionState:
        return SessionState(
            status=self.engine.status.value,
            is_playing=self.engine.is_playing,
            position=self.engine.position,
            track=self._track if self.engine.source is not None else None,
            effects=self._params
        )

    def _on_playback_ended(self) -> None:
        logger.info("Playback reached end of track")
