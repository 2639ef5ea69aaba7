"""
Reson8 Export API Routes
REST endpoints for offline render and WAV download
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from ...core.models import WAV_MIME_TYPE
from ...services.export_service import ExportArtifact, ExportService
from ...services.session_service import PlaybackSessionService
from ..dependencies import get_export_service, get_session_service, unwrap_or_raise

router = APIRouter()


@router.post("/", response_model=ExportArtifact)
async def export_audio(
    session: PlaybackSessionService = Depends(get_session_service),
    exports: ExportService = Depends(get_export_service)
):
    """Render the current track with the current effects to a WAV file"""
    result = await exports.export(session.effects)
    return unwrap_or_raise(result)


@router.get("/{filename}")
async def download_export(filename: str, exports: ExportService = Depends(get_export_service)):
    """Download a previously exported WAV file"""
    path = exports.resolve(filename)
    if path is None:
        raise HTTPException(status_code=404, detail=f"Export '{filename}' not found")
    return FileResponse(path, media_type=WAV_MIME_TYPE, filename=path.name)
