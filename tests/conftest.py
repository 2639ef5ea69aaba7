"""
Reson8 Testing Configuration
Pytest fixtures and test setup
"""
import io
import os
import sys
import tempfile
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

# Add src to Python path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Keep import-time settings away from the working tree and real devices
_scratch = tempfile.mkdtemp(prefix="reson8-tests-")
os.environ.setdefault("RESON8_AUDIO_OUTPUT_MODE", "manual")
os.environ.setdefault("RESON8_EXPORTS_PATH", os.path.join(_scratch, "exports"))
os.environ.setdefault("RESON8_LOG_FILE_PATH", os.path.join(_scratch, "logs", "reson8.log"))

from reson8.core.config import Reson8Settings  # noqa: E402
from reson8.core.engine import EffectsEngine  # noqa: E402
from reson8.core.models import DecodedAudio  # noqa: E402

TEST_SAMPLE_RATE = 8000


@pytest.fixture
def test_settings(tmp_path):
    """Settings with scratch paths and a manually clocked output"""
    return Reson8Settings(
        AUDIO_OUTPUT_MODE="manual",
        EXPORTS_PATH=str(tmp_path / "exports"),
        LOG_FILE_PATH=str(tmp_path / "logs" / "reson8.log"),
    )


@pytest.fixture
def engine(test_settings):
    """Effects engine driven by context.advance()"""
    effects_engine = EffectsEngine(test_settings, output_mode="manual")
    yield effects_engine
    effects_engine.close()


@pytest.fixture
def sine_audio():
    """1 second of stereo sine at 8kHz"""
    t = np.arange(TEST_SAMPLE_RATE) / TEST_SAMPLE_RATE
    left = 0.5 * np.sin(2 * np.pi * 440 * t)
    right = 0.5 * np.sin(2 * np.pi * 440 * t * 1.01)  # Slightly detuned
    return DecodedAudio(samples=np.vstack([left, right]), sample_rate=TEST_SAMPLE_RATE)


@pytest.fixture
def mono_sine_audio():
    """1 second of mono sine at 8kHz"""
    t = np.arange(TEST_SAMPLE_RATE) / TEST_SAMPLE_RATE
    return DecodedAudio(samples=(0.5 * np.sin(2 * np.pi * 220 * t))[np.newaxis, :], sample_rate=TEST_SAMPLE_RATE)


@pytest.fixture
def impulse_audio():
    """0.5 seconds of mono silence with a unit impulse at frame 0"""
    samples = np.zeros((1, TEST_SAMPLE_RATE // 2), dtype=np.float32)
    samples[0, 0] = 1.0
    return DecodedAudio(samples=samples, sample_rate=TEST_SAMPLE_RATE)


@pytest.fixture
def wav_bytes(sine_audio):
    """The stereo sine encoded as a 16-bit WAV file"""
    buffer = io.BytesIO()
    sf.write(buffer, sine_audio.samples.T, sine_audio.sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
