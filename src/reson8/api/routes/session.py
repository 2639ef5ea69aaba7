"""
Reson8 Session API Routes
Track upload and transport controls
"""

from fastapi import APIRouter, Depends, File, UploadFile

from ...services.session_service import LoadedTrack, PlaybackSessionService, SessionState
from ..dependencies import get_session_service, unwrap_or_raise

router = APIRouter()


@router.post("/load", response_model=LoadedTrack)
async def load_track(
    file: UploadFile = File(...),
    service: PlaybackSessionService = Depends(get_session_service)
):
    """Upload an audio file and make it the current track"""
    data = await file.read()
    return unwrap_or_raise(await service.load_file(file.filename, data))


@router.post("/toggle", response_model=SessionState)
async def toggle_playback(service: PlaybackSessionService = Depends(get_session_service)):
    """Play, or pause if already playing"""
    return unwrap_or_raise(service.toggle_play())


@router.post("/stop", response_model=SessionState)
async def stop_playback(service: PlaybackSessionService = Depends(get_session_service)):
    """Stop playback and rewind"""
    return service.stop()


@router.get("/state", response_model=SessionState)
async def get_state(service: PlaybackSessionService = Depends(get_session_service)):
    """Current transport and effect state"""
    return service.state()
