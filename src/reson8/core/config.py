"""
Reson8 Configuration Management
Centralized settings using Pydantic with environment variable support
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Reson8Settings(BaseSettings):
    """Reson8 application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_prefix="RESON8_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ============================================================================
    # APPLICATION SETTINGS
    # ============================================================================
    APP_NAME: str = "Reson8"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # ============================================================================
    # AUDIO OUTPUT SETTINGS
    # ============================================================================
    DEFAULT_SAMPLE_RATE: int = Field(default=48000)
    OUTPUT_CHANNELS: int = Field(default=2)
    OUTPUT_BUFFER_SIZE: int = Field(default=512)
    RENDER_QUANTUM: int = Field(default=128)
    # auto | device | headless | manual
    AUDIO_OUTPUT_MODE: str = Field(default="auto")

    SUPPORTED_SAMPLE_RATES: List[int] = [8000, 11025, 16000, 22050, 32000, 44100, 48000, 88200, 96000]

    # ============================================================================
    # EFFECT SETTINGS
    # ============================================================================
    MAX_DELAY_SECONDS: float = Field(default=5.0)
    PARAMETER_SMOOTHING_SECONDS: float = Field(default=0.1)
    ANALYSER_FFT_SIZE: int = Field(default=2048)
    ANALYSER_SMOOTHING: float = Field(default=0.8)
    ANALYSER_MIN_DECIBELS: float = Field(default=-100.0)
    ANALYSER_MAX_DECIBELS: float = Field(default=-30.0)

    # ============================================================================
    # EXPORT SETTINGS
    # ============================================================================
    EXPORTS_PATH: str = Field(default="./reson8_data/exports")
    EXPORT_FILENAME_PREFIX: str = Field(default="reson8-remix")
    # fixed | computed
    EXPORT_TAIL_MODE: str = Field(default="fixed")
    EXPORT_DECAY_TAIL_SECONDS: float = Field(default=3.0)
    EXPORT_TAIL_THRESHOLD_DB: float = Field(default=-60.0)
    EXPORT_MAX_TAIL_SECONDS: float = Field(default=30.0)

    # Maximum upload size (in bytes)
    MAX_UPLOAD_SIZE: int = Field(default=200 * 1024 * 1024)  # 200MB
    SUPPORTED_UPLOAD_EXTENSIONS: List[str] = [".wav", ".flac", ".ogg", ".aiff", ".aif", ".mp3"]

    # ============================================================================
    # VISUALIZER SETTINGS
    # ============================================================================
    VISUALIZER_FRAME_RATE: float = Field(default=30.0)

    # CORS settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # ============================================================================
    # LOGGING SETTINGS
    # ============================================================================
    LOG_FILE_PATH: str = Field(default="./logs/reson8.log")
    LOG_MAX_SIZE: int = Field(default=10 * 1024 * 1024)  # 10MB
    LOG_BACKUP_COUNT: int = Field(default=3)

    def __init__(self, **kwargs):
        """Initialize settings and create necessary directories"""
        super().__init__(**kwargs)
        self._create_directories()

    def _create_directories(self) -> None:
        """Create necessary directories if they don't exist"""
        directories = [
            self.EXPORTS_PATH,
            Path(self.LOG_FILE_PATH).parent,
        ]

        for directory in directories:
            Path(directory).mkdir(parents=True, exist_ok=True)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.DEBUG

    def get_audio_config(self) -> dict:
        """Get audio configuration dictionary"""
        return {
            "sample_rate": self.DEFAULT_SAMPLE_RATE,
            "channels": self.OUTPUT_CHANNELS,
            "buffer_size": self.OUTPUT_BUFFER_SIZE,
            "render_quantum": self.RENDER_QUANTUM,
            "output_mode": self.AUDIO_OUTPUT_MODE,
        }

    def get_effects_config(self) -> dict:
        """Get effect graph configuration dictionary"""
        return {
            "max_delay_seconds": self.MAX_DELAY_SECONDS,
            "smoothing_seconds": self.PARAMETER_SMOOTHING_SECONDS,
            "fft_size": self.ANALYSER_FFT_SIZE,
            "analyser_smoothing": self.ANALYSER_SMOOTHING,
            "min_decibels": self.ANALYSER_MIN_DECIBELS,
            "max_decibels": self.ANALYSER_MAX_DECIBELS,
        }

    def get_export_config(self) -> dict:
        """Get export configuration dictionary"""
        return {
            "exports_path": self.EXPORTS_PATH,
            "filename_prefix": self.EXPORT_FILENAME_PREFIX,
            "tail_mode": self.EXPORT_TAIL_MODE,
            "decay_tail_seconds": self.EXPORT_DECAY_TAIL_SECONDS,
            "tail_threshold_db": self.EXPORT_TAIL_THRESHOLD_DB,
        }

    def validate_sample_rate(self, sample_rate: int) -> bool:
        """Validate sample rate against supported values"""
        return sample_rate in self.SUPPORTED_SAMPLE_RATES

    def validate_upload_extension(self, filename: str) -> bool:
        """Validate an uploaded file name against supported extensions"""
        return Path(filename).suffix.lower() in self.SUPPORTED_UPLOAD_EXTENSIONS


@lru_cache()
def get_settings() -> Reson8Settings:
    """Get application settings (cached)"""
    return Reson8Settings()
