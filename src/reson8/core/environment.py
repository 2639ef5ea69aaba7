"""
Reson8 Environment Detection
Decides whether the live graph can drive a real output device
"""

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class EnvironmentType(Enum):
    """Environment types Reson8 runs in"""
    DESKTOP = "desktop"      # Local desktop with audio hardware
    CONTAINER = "container"  # Docker container
    CI_CD = "ci_cd"          # Continuous integration environment


class AudioCapability(Enum):
    """Audio capability levels"""
    FULL = "full"                        # Live output through a device
    PROCESSING_ONLY = "processing_only"  # Rendering without a device


class EnvironmentDetector:
    """Detects the current runtime environment and its audio capabilities"""

    def __init__(self):
        self._detection_cache: Dict[str, Any] = {}
        self._environment_type = self._detect_environment_type()
        self._audio_capability = self._detect_audio_capability()
        logger.info(
            f"Environment detected: {self._environment_type.value}, "
            f"Audio: {self._audio_capability.value}"
        )

    def _detect_environment_type(self) -> EnvironmentType:
        ci_cd_indicators = [
            os.environ.get('CI') == 'true',
            os.environ.get('GITHUB_ACTIONS') == 'true',
            os.environ.get('GITLAB_CI') == 'true',
            os.environ.get('JENKINS_URL'),
        ]
        if any(ci_cd_indicators):
            return EnvironmentType.CI_CD

        if os.path.exists('/.dockerenv') or os.environ.get('CONTAINER') == 'true':
            return EnvironmentType.CONTAINER

        return EnvironmentType.DESKTOP

    def _detect_audio_capability(self) -> AudioCapability:
        if self._environment_type != EnvironmentType.DESKTOP:
            return AudioCapability.PROCESSING_ONLY

        try:
            import pyaudio

            pa = pyaudio.PyAudio()
            device_count = pa.get_device_count()
            pa.terminate()

            if device_count > 0:
                self._detection_cache['audio_devices'] = device_count
                return AudioCapability.FULL

            logger.warning("PyAudio initialized but no audio devices found")
            return AudioCapability.PROCESSING_ONLY

        except ImportError:
            logger.warning("PyAudio not available - rendering without an output device")
            return AudioCapability.PROCESSING_ONLY
        except Exception as e:
            logger.warning(f"Audio system detection failed: {e}")
            return AudioCapability.PROCESSING_ONLY

    def has_real_audio_hardware(self) -> bool:
        """Check if real audio hardware is available"""
        return self._audio_capability == AudioCapability.FULL

    def get_environment_info(self) -> Dict[str, Any]:
        info = {
            "environment_type": self._environment_type.value,
            "audio_capability": self._audio_capability.value,
        }
        info.update(self._detection_cache)
        return info


# Global environment detector instance
_environment_detector: Optional[EnvironmentDetector] = None


def get_environment_detector() -> EnvironmentDetector:
    """Get singleton EnvironmentDetector instance"""
    global _environment_detector
    if _environment_detector is None:
        _environment_detector = EnvironmentDetector()
    return _environment_detector


def has_audio_hardware() -> bool:
    """Quick check if audio hardware is available"""
    return get_environment_detector().has_real_audio_hardware()


def resolve_output_mode(mode: str) -> str:
    """Map the configured output mode onto a concrete RealtimeContext mode"""
    if mode == "auto":
        return "device" if has_audio_hardware() else "headless"
    return mode
