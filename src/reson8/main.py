"""
Reson8 - Audio Effects Engine
FastAPI backend exposing live playback, effect controls and WAV export
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import effects, exports, session
from .api.websocket import ConnectionManager, VisualizerStreamHandler
from .core.config import Reson8Settings, get_settings
from .core.engine import EffectsEngine
from .core.environment import get_environment_detector
from .core.exceptions import DecodeError, NoSourceError, RenderError
from .core.logging import setup_logging
from .services.export_service import ExportService
from .services.session_service import PlaybackSessionService

logger = logging.getLogger("reson8")


def create_app(settings: Optional[Reson8Settings] = None) -> FastAPI:
    """Build the application; each app owns exactly one effects engine"""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup and shutdown events"""
        setup_logging(settings)
        logger.info("Starting Reson8 backend server...")

        engine = EffectsEngine(settings)
        app.state.settings = settings
        app.state.engine = engine
        app.state.session_service = PlaybackSessionService(engine, settings)
        app.state.export_service = ExportService(engine, settings)
        app.state.websocket_manager = ConnectionManager()
        app.state.visualizer_handler = VisualizerStreamHandler(app.state.websocket_manager)

        logger.info(f"Effects engine ready: output_mode={engine.output_mode}")

        yield

        logger.info("Shutting down Reson8 backend...")
        try:
            engine.close()
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    app = FastAPI(
        title="Reson8 API",
        description="Real-time pitch, echo and reverse effects with WAV export",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Exception handlers
    @app.exception_handler(DecodeError)
    async def decode_error_handler(request: Request, exc: DecodeError):
        return JSONResponse(status_code=400, content={"error": "Could not decode audio", "detail": str(exc)})

    @app.exception_handler(NoSourceError)
    async def no_source_handler(request: Request, exc: NoSourceError):
        return JSONResponse(status_code=409, content={"error": "No audio loaded", "detail": str(exc)})

    @app.exception_handler(RenderError)
    async def render_error_handler(request: Request, exc: RenderError):
        logger.error(f"Render failed: {exc}")
        return JSONResponse(status_code=500, content={"error": "Render failed", "detail": str(exc)})

    @app.get("/health")
    async def health_check(request: Request) -> Dict[str, Any]:
        """Health check endpoint"""
        engine: EffectsEngine = request.app.state.engine
        return {
            "status": "healthy",
            "version": __version__,
            "services": {
                "effects_engine": engine.status.value,
                "output_mode": engine.output_mode,
                "source_loaded": engine.source is not None
            },
            "environment": get_environment_detector().get_environment_info()
        }

    @app.get("/api/info")
    async def app_info() -> Dict[str, Any]:
        """Get application information"""
        return {
            "name": settings.APP_NAME,
            "version": __version__,
            "description": "Audio effects laboratory",
            "features": [
                "Pitch Shift (+/- 1 octave)",
                "Echo with Feedback",
                "Reverse Playback",
                "Live Visualizer",
                "16-bit PCM WAV Export"
            ],
            "audio": settings.get_audio_config(),
            "effects": settings.get_effects_config()
        }

    app.include_router(session.router, prefix="/api/session", tags=["Session"])
    app.include_router(effects.router, prefix="/api/effects", tags=["Effects"])
    app.include_router(exports.router, prefix="/api/exports", tags=["Export"])

    @app.websocket("/ws/visualizer")
    async def websocket_visualizer_endpoint(websocket: WebSocket):
        """WebSocket endpoint streaming analyser frames"""
        handler: VisualizerStreamHandler = websocket.app.state.visualizer_handler
        connection_id = f"visualizer_{id(websocket):x}"

        await handler.serve(
            websocket,
            connection_id,
            websocket.app.state.engine,
            settings.VISUALIZER_FRAME_RATE
        )

    return app


app = create_app()


def run():
    """Development server"""
    settings = get_settings()
    uvicorn.run(
        "reson8.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()
