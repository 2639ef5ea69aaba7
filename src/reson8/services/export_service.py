"""
Reson8 Export Service
Offline render of the current track to a WAV file on disk
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from ..core.config import Reson8Settings, get_settings
from ..core.engine import EffectsEngine
from ..core.exceptions import NoSourceError, RenderError
from ..core.models import EffectParameters
from ..core.result import Result

logger = logging.getLogger(__name__)


class ExportArtifact(BaseModel):
    """A rendered file written under the exports directory"""
    filename: str
    path: str
    mime_type: str
    size_bytes: int
    duration: float
    sample_rate: int
    channels: int
    created_at_ms: int


class ExportService:
    """Renders the loaded track with the given effects and stores the result"""

    def __init__(self, engine: EffectsEngine, settings: Optional[Reson8Settings] = None):
        self.engine = engine
        self.settings = settings or get_settings()
        self.exports_path = Path(self.settings.EXPORTS_PATH)

    def build_filename(self, timestamp_ms: Optional[int] = None) -> str:
        """``<prefix>-<epoch-ms>.wav``"""
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        return f"{self.settings.EXPORT_FILENAME_PREFIX}-{timestamp_ms}.wav"

    async def export(self, params: EffectParameters) -> Result[ExportArtifact]:
        """
        Render, encode and write the current track

        Args:
            params: Effect parameters to bake into the file

        Returns:
            Result with the written artifact; NO_SOURCE or RENDER_ERROR on failure
        """
        try:
            container = await self.engine.export_audio(params)
        except NoSourceError as e:
            return Result.err(str(e), "NO_SOURCE")
        except RenderError as e:
            logger.error(f"Export render failed: {e}")
            return Result.err(str(e), "RENDER_ERROR")

        created_at_ms = int(time.time() * 1000)
        filename = self.build_filename(created_at_ms)
        path = await asyncio.to_thread(container.write_to, self.exports_path / filename)

        logger.info(f"Exported {container.duration:.2f}s to {path}")
        return Result.ok(ExportArtifact(
            filename=filename,
            path=str(path),
            mime_type=container.mime_type,
            size_bytes=len(container),
            duration=container.duration,
            sample_rate=container.sample_rate,
            channels=container.channels,
            created_at_ms=created_at_ms
        ))

    def resolve(self, filename: str) -> Optional[Path]:
        """Path of a previously exported file, or None if it does not exist"""
        candidate = (self.exports_path / Path(filename).name)
        if candidate.suffix != ".wav" or not candidate.is_file():
            return None
        return candidate
