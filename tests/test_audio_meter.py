"""Tests for audio meter module."""

import numpy as np

from callscribe.audio_meter import calculate_rms, linear_to_db, to_mono


class TestCalculateRms:
    """Tests for RMS calculation."""

    def test_silence(self):
        """Test RMS of silence is zero."""
        silence = np.zeros(1024, dtype=np.float32)
        assert calculate_rms(silence) == 0.0

    def test_full_scale_sine(self):
        """Test RMS of full-scale sine wave."""
        t = np.linspace(0, 1, 48000, dtype=np.float32)
        sine = np.sin(2 * np.pi * 440 * t).astype(np.float32)
        rms = calculate_rms(sine)
        # RMS of a sine wave is 1/sqrt(2)
        assert abs(rms - 0.707) < 0.01

    def test_full_scale_dc(self):
        dc = np.ones(1024, dtype=np.float32)
        assert abs(calculate_rms(dc) - 1.0) < 0.001

    def test_stereo_input(self):
        """Test RMS handles stereo input."""
        stereo = np.ones((1024, 2), dtype=np.float32)
        stereo[:, 0] = 0.5
        stereo[:, 1] = 1.0
        assert abs(calculate_rms(stereo) - 0.75) < 0.01

    def test_empty_array(self):
        assert calculate_rms(np.array([], dtype=np.float32)) == 0.0


class TestLinearToDb:
    """Tests for decibel conversion."""

    def test_full_scale_is_zero_db(self):
        assert linear_to_db(1.0) == 0.0

    def test_half_scale(self):
        assert abs(linear_to_db(0.5) - (-6.02)) < 0.01

    def test_zero_returns_floor(self):
        assert linear_to_db(0.0) == -120.0
        assert linear_to_db(0.0, reference_db=-90.0) == -90.0

    def test_tiny_value_clamped_to_floor(self):
        assert linear_to_db(1e-9) == -120.0


class TestToMono:
    """Tests for mono conversion."""

    def test_flattens_single_channel_block(self):
        block = np.ones((256, 1), dtype=np.float32)
        mono = to_mono(block)
        assert mono.shape == (256,)
        assert mono.dtype == np.float32

    def test_averages_channels(self):
        block = np.zeros((4, 2), dtype=np.float32)
        block[:, 1] = 1.0
        assert np.allclose(to_mono(block), 0.5)
