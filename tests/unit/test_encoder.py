"""
Unit tests for the 16-bit PCM WAV encoder
Tests header layout, sample quantization and channel interleaving
"""
import io

import numpy as np
import pytest
import soundfile as sf

from reson8.core.encoder import (
    HEADER_SIZE,
    build_header,
    encode_wav,
    parse_wav_header,
    quantize_pcm16,
)
from reson8.core.models import RenderedAudio


@pytest.mark.unit
class TestWavEncoder:
    """Test WAV container encoding"""

    def test_reference_scenario(self):
        """Mono [1, -1, 0, 0.5] at 8kHz produces the reference bytes"""
        audio = RenderedAudio.from_channels([[1.0, -1.0, 0.0, 0.5]], 8000)
        container = encode_wav(audio)

        header = parse_wav_header(container.data)
        assert header.format_tag == 1
        assert header.channels == 1
        assert header.sample_rate == 8000
        assert header.byte_rate == 16000
        assert header.block_align == 2
        assert header.bits_per_sample == 16
        assert header.data_size == 8
        assert header.riff_size == len(container.data) - 8

        assert container.data[:4] == b"RIFF"
        assert container.data[8:16] == b"WAVEfmt "
        assert container.data[36:40] == b"data"
        assert container.data[HEADER_SIZE:] == bytes.fromhex("ff7f008000000040")

    def test_container_metadata(self):
        audio = RenderedAudio.from_channels([[0.0] * 10, [0.0] * 10], 44100)
        container = encode_wav(audio)

        assert container.mime_type == "audio/wav"
        assert container.channels == 2
        assert container.frames == 10
        assert len(container) == HEADER_SIZE + 10 * 2 * 2

    def test_out_of_range_samples_are_clamped(self):
        pcm = quantize_pcm16(np.array([1.5, -3.0, 1.0, -1.0]))
        assert pcm.tolist() == [32767, -32768, 32767, -32768]

    def test_interleaves_frame_by_frame(self):
        audio = RenderedAudio.from_channels([[1.0, 0.0], [-1.0, 0.5]], 8000)
        payload = encode_wav(audio).data[HEADER_SIZE:]

        # L0 R0 L1 R1
        assert payload == bytes.fromhex("ff7f0080" "00000040")

    def test_encoding_is_deterministic(self, sine_audio):
        rendered = RenderedAudio(samples=sine_audio.samples, sample_rate=sine_audio.sample_rate)
        assert encode_wav(rendered).data == encode_wav(rendered).data

    def test_mismatched_channel_lengths_fail_fast(self):
        with pytest.raises(ValueError):
            RenderedAudio.from_channels([[0.0, 0.1], [0.0]], 8000)

    def test_readable_by_soundfile(self, sine_audio):
        rendered = RenderedAudio(samples=sine_audio.samples, sample_rate=sine_audio.sample_rate)
        data, sample_rate = sf.read(io.BytesIO(encode_wav(rendered).data), dtype="float32", always_2d=True)

        assert sample_rate == sine_audio.sample_rate
        assert data.shape == (sine_audio.frames, 2)
        np.testing.assert_allclose(data.T, sine_audio.samples, atol=1.0 / 32767)

    def test_header_parser_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_wav_header(b"RIFF")
        with pytest.raises(ValueError):
            parse_wav_header(b"X" * HEADER_SIZE)

    def test_build_header_sizes(self):
        header = parse_wav_header(build_header(channels=2, sample_rate=48000, frames=480))
        assert header.data_size == 480 * 2 * 2
        assert header.frames == 480
