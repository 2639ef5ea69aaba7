"""
Unit tests for the Reson8 data model and buffer helpers
Tests parameter clamping, sample buffers and non-destructive reversal
"""
import numpy as np
import pytest

from reson8.core.buffers import playback_samples, reversed_samples
from reson8.core.models import DecodedAudio, EffectParameters, SampleBuffer


@pytest.mark.unit
class TestEffectParameters:
    """Test effect parameter validation"""

    def test_defaults(self):
        params = EffectParameters()
        assert params.pitch_shift == 0
        assert params.echo_delay == 0.0
        assert params.echo_feedback == 0.0
        assert params.reversed is False
        assert params.playback_rate == 1.0

    def test_range_limits_are_accepted(self):
        assert EffectParameters(pitch_shift=1200).pitch_shift == 1200
        assert EffectParameters(pitch_shift=-1200).pitch_shift == -1200
        assert EffectParameters(echo_feedback=0.9).echo_feedback == 0.9
        assert EffectParameters(echo_delay=2.0).echo_delay == 2.0

    def test_out_of_range_values_are_clamped(self):
        params = EffectParameters(pitch_shift=5000, echo_delay=-1.0, echo_feedback=1.5)
        assert params.pitch_shift == 1200
        assert params.echo_delay == 0.0
        assert params.echo_feedback == 0.9

    def test_octave_playback_rate(self):
        assert EffectParameters(pitch_shift=1200).playback_rate == pytest.approx(2.0)
        assert EffectParameters(pitch_shift=-1200).playback_rate == pytest.approx(0.5)

    def test_camel_case_aliases(self):
        params = EffectParameters.model_validate(
            {"pitchShift": 300, "echoDelay": 0.25, "echoFeedback": 0.4, "reversed": True}
        )
        assert params.pitch_shift == 300
        assert params.echo_delay == 0.25
        assert params.reversed is True
        assert params.model_dump(by_alias=True)["echoFeedback"] == 0.4

    def test_parameters_are_immutable(self):
        params = EffectParameters()
        with pytest.raises(Exception):
            params.pitch_shift = 100


@pytest.mark.unit
class TestSampleBuffers:
    """Test sample buffer containers and reversal"""

    def test_decoded_audio_is_read_only_copy(self):
        source = np.zeros((2, 16), dtype=np.float32)
        audio = DecodedAudio(samples=source, sample_rate=8000)

        source[0, 0] = 1.0
        assert audio.samples[0, 0] == 0.0
        with pytest.raises(ValueError):
            audio.samples[0, 0] = 1.0

    def test_buffer_properties(self, sine_audio):
        assert sine_audio.channels == 2
        assert sine_audio.frames == 8000
        assert sine_audio.duration == pytest.approx(1.0)
        assert sine_audio.channel_data(1).shape == (8000,)

    def test_invalid_buffers(self):
        with pytest.raises(ValueError):
            SampleBuffer(samples=np.zeros(4), sample_rate=8000)
        with pytest.raises(ValueError):
            SampleBuffer(samples=np.zeros((1, 4)), sample_rate=0)

    def test_reverse_of_reverse_is_identity(self, sine_audio):
        once = reversed_samples(sine_audio)
        twice = reversed_samples(DecodedAudio(samples=once, sample_rate=sine_audio.sample_rate))

        np.testing.assert_array_equal(twice, sine_audio.samples)

    def test_reverse_is_per_channel_and_non_destructive(self):
        audio = DecodedAudio.from_channels([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]], 8000)
        flipped = reversed_samples(audio)

        assert flipped.tolist() == [[3.0, 2.0, 1.0], [6.0, 5.0, 4.0]]
        assert audio.samples.tolist() == [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]
        assert flipped.flags.writeable

    def test_playback_samples_forward_shares_canonical(self, sine_audio):
        assert playback_samples(sine_audio, reverse=False) is sine_audio.samples
        assert playback_samples(sine_audio, reverse=True) is not sine_audio.samples
