"""
Unit tests for the playback session and export services
Tests upload validation, transport toggles, effect updates and file export
"""
import re
import threading
from pathlib import Path

import pytest

from reson8.core import engine as engine_module
from reson8.core.encoder import parse_wav_header
from reson8.core.models import EncodedContainer, PlaybackStatus
from reson8.services.export_service import ExportService
from reson8.services.session_service import PlaybackSessionService


@pytest.fixture
def session_service(engine, test_settings):
    return PlaybackSessionService(engine, test_settings)


@pytest.fixture
def export_service(engine, test_settings):
    return ExportService(engine, test_settings)


@pytest.mark.unit
class TestPlaybackSessionService:
    """Test caller-side transport and effect state"""

    @pytest.mark.asyncio
    async def test_load_file(self, session_service, wav_bytes):
        result = await session_service.load_file("loop.wav", wav_bytes)

        assert result.is_ok()
        track = result.data
        assert track.name == "loop.wav"
        assert track.channels == 2
        assert track.duration == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_rejects_unsupported_extension(self, session_service, wav_bytes):
        result = await session_service.load_file("loop.txt", wav_bytes)
        assert not result.is_ok()
        assert result.error_code == "UNSUPPORTED_FORMAT"

    @pytest.mark.asyncio
    async def test_rejects_oversized_upload(self, engine, test_settings, wav_bytes):
        settings = test_settings.model_copy(update={"MAX_UPLOAD_SIZE": 16})
        service = PlaybackSessionService(engine, settings)

        result = await service.load_file("loop.wav", wav_bytes)
        assert result.error_code == "FILE_TOO_LARGE"

    @pytest.mark.asyncio
    async def test_decode_failure(self, session_service):
        result = await session_service.load_file("broken.wav", b"RIFF....garbage")
        assert result.error_code == "DECODE_ERROR"

    def test_toggle_without_track_is_guarded(self, session_service):
        result = session_service.toggle_play()
        assert result.error_code == "NO_SOURCE"
        assert session_service.state().status == "idle"

    @pytest.mark.asyncio
    async def test_toggle_play_and_pause(self, session_service, engine, wav_bytes):
        await session_service.load_file("loop.wav", wav_bytes)

        playing = session_service.toggle_play().data
        assert playing.is_playing

        engine.context.advance(0.25)
        paused = session_service.toggle_play().data
        assert paused.status == "paused"
        assert paused.position == pytest.approx(0.25)

        stopped = session_service.stop()
        assert stopped.status == "idle"
        assert stopped.position == 0.0

    def test_set_effects_is_partial_and_clamped(self, session_service):
        session_service.set_effects(pitch_shift=700)
        params = session_service.set_effects(echo_feedback=2.0)

        assert params.pitch_shift == 700
        assert params.echo_feedback == 0.9
        assert params.echo_delay == 0.0

    def test_reset_effects(self, session_service):
        session_service.set_effects(pitch_shift=-300, echo_delay=0.4, echo_feedback=0.6)
        session_service.toggle_reverse()

        params = session_service.reset_effects()
        assert params.pitch_shift == 0
        assert params.echo_delay == 0.0
        assert params.echo_feedback == 0.0
        assert params.reversed is False

    @pytest.mark.asyncio
    async def test_toggle_reverse_restarts_running_session(self, session_service, engine, wav_bytes):
        await session_service.load_file("loop.wav", wav_bytes)
        session_service.toggle_play()
        first = engine.session
        engine.context.advance(0.1)

        params = session_service.toggle_reverse()
        assert params.reversed
        assert engine.session is not first
        assert engine.session.params.reversed
        assert engine.status == PlaybackStatus.PLAYING

    @pytest.mark.asyncio
    async def test_toggle_reverse_when_idle_only_flips_flag(self, session_service, engine, wav_bytes):
        await session_service.load_file("loop.wav", wav_bytes)
        session_service.toggle_reverse()

        assert session_service.effects.reversed
        assert engine.session is None

    @pytest.mark.asyncio
    async def test_load_decodes_off_the_event_loop(self, session_service, engine, wav_bytes, monkeypatch):
        threads = []
        load_source = engine.load_source

        def recording_load(data, name=None):
            threads.append(threading.current_thread())
            return load_source(data, name=name)

        monkeypatch.setattr(engine, "load_source", recording_load)
        result = await session_service.load_file("loop.wav", wav_bytes)

        assert result.is_ok()
        assert threads and threads[0] is not threading.main_thread()


@pytest.mark.unit
class TestExportService:
    """Test rendering to files"""

    def test_filename_convention(self, export_service):
        assert export_service.build_filename(1700000000000) == "reson8-remix-1700000000000.wav"

    @pytest.mark.asyncio
    async def test_export_writes_wav(self, export_service, session_service, wav_bytes, test_settings):
        await session_service.load_file("loop.wav", wav_bytes)
        session_service.set_effects(echo_delay=0.2, echo_feedback=0.5)

        artifact = (await export_service.export(session_service.effects)).data

        assert re.fullmatch(r"reson8-remix-\d+\.wav", artifact.filename)
        path = Path(artifact.path)
        assert path.parent == Path(test_settings.EXPORTS_PATH)
        assert path.stat().st_size == artifact.size_bytes

        header = parse_wav_header(path.read_bytes())
        assert header.channels == 2
        assert header.sample_rate == 8000
        assert artifact.duration == pytest.approx(4.0)
        assert export_service.resolve(artifact.filename) == path

    @pytest.mark.asyncio
    async def test_export_without_track(self, export_service, session_service):
        result = await export_service.export(session_service.effects)
        assert result.error_code == "NO_SOURCE"

    @pytest.mark.asyncio
    async def test_export_encodes_and_writes_off_the_event_loop(
        self, export_service, session_service, wav_bytes, monkeypatch
    ):
        threads = {}
        encode_wav = engine_module.encode_wav
        write_to = EncodedContainer.write_to

        def recording_encode(audio):
            threads["encode"] = threading.current_thread()
            return encode_wav(audio)

        def recording_write(container, path):
            threads["write"] = threading.current_thread()
            return write_to(container, path)

        monkeypatch.setattr(engine_module, "encode_wav", recording_encode)
        monkeypatch.setattr(EncodedContainer, "write_to", recording_write)
        await session_service.load_file("loop.wav", wav_bytes)

        result = await export_service.export(session_service.effects)

        assert result.is_ok()
        assert threads["encode"] is not threading.main_thread()
        assert threads["write"] is not threading.main_thread()

    def test_resolve_missing(self, export_service):
        assert export_service.resolve("missing.wav") is None
        assert export_service.resolve("../../etc/passwd") is None
