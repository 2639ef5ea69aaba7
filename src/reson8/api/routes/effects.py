"""
Reson8 Effects API Routes
Pitch, echo and reverse controls
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ...core.models import EffectParameters
from ...services.session_service import PlaybackSessionService
from ..dependencies import get_session_service

router = APIRouter()


class EffectsUpdate(BaseModel):
    """Partial update of the continuous effect controls"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pitch_shift: Optional[int] = None
    echo_delay: Optional[float] = None
    echo_feedback: Optional[float] = None


@router.get("/", response_model=EffectParameters)
async def get_effects(service: PlaybackSessionService = Depends(get_session_service)):
    """Current effect parameters"""
    return service.effects


@router.patch("/", response_model=EffectParameters)
async def update_effects(
    update: EffectsUpdate,
    service: PlaybackSessionService = Depends(get_session_service)
):
    """Glide the live graph to new pitch/echo values"""
    return service.set_effects(
        pitch_shift=update.pitch_shift,
        echo_delay=update.echo_delay,
        echo_feedback=update.echo_feedback
    )


@router.post("/reset", response_model=EffectParameters)
async def reset_effects(service: PlaybackSessionService = Depends(get_session_service)):
    """Restore default effect parameters"""
    return service.reset_effects()


@router.post("/reverse", response_model=EffectParameters)
async def toggle_reverse(service: PlaybackSessionService = Depends(get_session_service)):
    """Flip playback direction"""
    return service.toggle_reverse()
