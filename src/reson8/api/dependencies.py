"""
Reson8 API Dependencies
Per-application service lookup and Result-to-HTTP mapping
"""

from fastapi import HTTPException, Request

from ..core.result import Result
from ..services.export_service import ExportService
from ..services.session_service import PlaybackSessionService

ERROR_STATUS_CODES = {
    "DECODE_ERROR": 400,
    "UNSUPPORTED_FORMAT": 400,
    "FILE_TOO_LARGE": 413,
    "NO_SOURCE": 409,
    "RENDER_ERROR": 500,
}


def get_session_service(request: Request) -> PlaybackSessionService:
    return request.app.state.session_service


def get_export_service(request: Request) -> ExportService:
    return request.app.state.export_service


def unwrap_or_raise(result: Result):
    """Return the result data or raise the matching HTTPException"""
    if result.is_ok():
        return result.data
    raise HTTPException(
        status_code=ERROR_STATUS_CODES.get(result.error_code, 500),
        detail={"error": result.error, "error_code": result.error_code}
    )
