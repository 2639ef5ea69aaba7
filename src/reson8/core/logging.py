"""
Reson8 Logging Configuration
Structured logging setup with file rotation for the effects engine
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional

import structlog
from pythonjsonlogger import jsonlogger

from .config import Reson8Settings, get_settings

CONSOLE_JSON_FORMAT = '%(asctime)s %(name)s %(levelname)s %(message)s'
FILE_JSON_FORMAT = '%(asctime)s %(name)s %(levelname)s %(module)s %(lineno)d %(threadName)s %(message)s'
DEV_CONSOLE_FORMAT = (
    '\033[92m%(asctime)s\033[0m '
    '\033[94m%(name)s\033[0m '
    '\033[%(levelno)s;1m%(levelname)s\033[0m '
    '%(message)s'
)

# Domain loggers and their levels; reson8.audio stays verbose for render stats
DOMAIN_LOG_LEVELS = {
    "reson8.audio": logging.DEBUG,
    "reson8.playback": logging.INFO,
    "reson8.websocket": logging.INFO,
    "uvicorn": logging.INFO,
    "fastapi": logging.INFO,
    "asyncio": logging.WARNING,
}


def _console_handler(settings: Reson8Settings) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    if settings.is_development:
        handler.setFormatter(logging.Formatter(DEV_CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    else:
        handler.setFormatter(jsonlogger.JsonFormatter(CONSOLE_JSON_FORMAT))
    return handler


def _file_handler(settings: Reson8Settings) -> logging.Handler:
    log_path = Path(settings.LOG_FILE_PATH)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=settings.LOG_MAX_SIZE,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(jsonlogger.JsonFormatter(FILE_JSON_FORMAT))
    return handler


def _configure_structlog(settings: Reson8Settings) -> None:
    renderer = structlog.dev.ConsoleRenderer() if settings.is_development else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def setup_logging(settings: Optional[Reson8Settings] = None) -> logging.Logger:
    """
    Route stdlib and structlog output to the console and a rotating JSON file.

    Safe to call more than once; existing root handlers are replaced.
    """
    settings = settings or get_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.addHandler(_console_handler(settings))
    root_logger.addHandler(_file_handler(settings))
    _configure_structlog(settings)

    for name, level in DOMAIN_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    logger = logging.getLogger("reson8")
    logger.info(f"Logging configured - Level: {settings.LOG_LEVEL}, file: {settings.LOG_FILE_PATH}")
    return logger


class AudioProcessingLogger:
    """Specialized logger for decode, render and encode operations"""

    def __init__(self):
        self.logger = structlog.get_logger("reson8.audio")

    def log_processing_start(
        self,
        operation: str,
        **kwargs: Any
    ) -> None:
        """Log start of audio processing operation"""
        self.logger.info(
            "Audio processing started",
            operation=operation,
            **kwargs
        )

    def log_processing_complete(
        self,
        operation: str,
        duration_ms: float,
        **kwargs: Any
    ) -> None:
        """Log completion of audio processing operation"""
        self.logger.info(
            "Audio processing completed",
            operation=operation,
            duration_ms=duration_ms,
            **kwargs
        )

    def log_processing_error(
        self,
        operation: str,
        error: str,
        **kwargs: Any
    ) -> None:
        """Log audio processing error"""
        self.logger.error(
            "Audio processing failed",
            operation=operation,
            error=error,
            **kwargs
        )

    def log_render_stats(
        self,
        audio_duration_s: float,
        processing_time_s: float,
        frames: int,
        channels: int
    ) -> None:
        """Log offline render throughput"""
        self.logger.info(
            "Offline render completed",
            audio_duration_s=audio_duration_s,
            processing_time_s=processing_time_s,
            realtime_factor=audio_duration_s / processing_time_s if processing_time_s > 0 else None,
            frames=frames,
            channels=channels
        )


class PlaybackLogger:
    """Logger for live session transitions and parameter changes"""

    def __init__(self):
        self.logger = structlog.get_logger("reson8.playback")

    def log_state_change(
        self,
        session_id: Optional[str],
        old_state: str,
        new_state: str,
        offset_s: float
    ) -> None:
        """Log a playback state transition"""
        self.logger.info(
            "Playback state changed",
            session_id=session_id,
            old_state=old_state,
            new_state=new_state,
            offset_s=offset_s
        )

    def log_parameter_update(
        self,
        pitch_cents: int,
        echo_delay_s: float,
        echo_feedback: float,
        smoothed: bool
    ) -> None:
        """Log a parameter push to the live graph"""
        self.logger.debug(
            "Effect parameters applied",
            pitch_cents=pitch_cents,
            echo_delay_s=echo_delay_s,
            echo_feedback=echo_feedback,
            smoothed=smoothed
        )


class WebSocketLogger:
    """Specialized logger for visualizer WebSocket operations"""

    def __init__(self):
        self.logger = structlog.get_logger("reson8.websocket")

    def log_connection(self, connection_id: str) -> None:
        """Log WebSocket connection"""
        self.logger.info(
            "WebSocket connection established",
            connection_id=connection_id
        )

    def log_disconnection(
        self,
        connection_id: str,
        reason: str = None
    ) -> None:
        """Log WebSocket disconnection"""
        self.logger.info(
            "WebSocket connection closed",
            connection_id=connection_id,
            reason=reason
        )

    def log_message_sent(
        self,
        connection_id: str,
        message_type: str,
        size_bytes: int
    ) -> None:
        """Log WebSocket message sent"""
        self.logger.debug(
            "WebSocket message sent",
            connection_id=connection_id,
            message_type=message_type,
            size_bytes=size_bytes
        )


# Create global logger instances
audio_logger = AudioProcessingLogger()
playback_logger = PlaybackLogger()
websocket_logger = WebSocketLogger()

__all__ = [
    "setup_logging",
    "AudioProcessingLogger",
    "PlaybackLogger",
    "WebSocketLogger",
    "audio_logger",
    "playback_logger",
    "websocket_logger"
]
