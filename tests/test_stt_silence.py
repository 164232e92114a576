"""Tests for frame-level silence detection."""

import numpy as np

from callscribe.stt.silence import SILENCE_FLOOR_DB, SilenceDetector
from conftest import FakeClock, tone

QUIET = tone(0.001)  # -60 dB
LOUD = tone(0.1)  # -20 dB


class TestSilenceDetector:
    """Tests for SilenceDetector."""

    def test_loud_frames_are_not_silent(self):
        detector = SilenceDetector(threshold_db=-45.0, min_duration_ms=1000)
        assert detector.observe(LOUD, timestamp=0.0) is False
        assert detector.last_db > -45.0

    def test_silence_needs_minimum_duration(self):
        detector = SilenceDetector(threshold_db=-45.0, min_duration_ms=1000)

        assert detector.observe(QUIET, timestamp=0.0) is False
        assert detector.observe(QUIET, timestamp=0.5) is False
        assert detector.observe(QUIET, timestamp=1.0) is True
        assert detector.is_silent is True

    def test_latch_holds_while_quiet(self):
        detector = SilenceDetector(threshold_db=-45.0, min_duration_ms=500)
        for t in (0.0, 0.6, 1.2, 5.0):
            detector.observe(QUIET, timestamp=t)
        assert detector.is_silent is True

    def test_loud_frame_clears_latch_immediately(self):
        detector = SilenceDetector(threshold_db=-45.0, min_duration_ms=500)
        detector.observe(QUIET, timestamp=0.0)
        detector.observe(QUIET, timestamp=1.0)

        assert detector.observe(LOUD, timestamp=1.1) is False
        assert detector.is_silent is False
        # Timer restarts from the next quiet frame
        assert detector.observe(QUIET, timestamp=1.2) is False
        assert detector.observe(QUIET, timestamp=1.8) is True

    def test_short_gaps_never_report_silence(self):
        detector = SilenceDetector(threshold_db=-45.0, min_duration_ms=1000)
        t = 0.0
        for _ in range(20):
            assert detector.observe(QUIET, timestamp=t) is False
            t += 0.256
            assert detector.observe(LOUD, timestamp=t) is False
            t += 0.256

    def test_digital_silence(self):
        detector = SilenceDetector(threshold_db=-45.0, min_duration_ms=0)
        assert detector.observe(np.zeros(256, dtype=np.float32), timestamp=0.0) is True
        assert detector.last_db == SILENCE_FLOOR_DB

    def test_uses_clock_without_timestamp(self):
        clock = FakeClock(10.0)
        detector = SilenceDetector(threshold_db=-45.0, min_duration_ms=1000, clock=clock)
        detector.observe(QUIET)
        clock.advance(1.5)
        assert detector.observe(QUIET) is True

    def test_configure_resets_state(self):
        detector = SilenceDetector(threshold_db=-45.0, min_duration_ms=0)
        detector.observe(QUIET, timestamp=0.0)
        assert detector.is_silent is True

        detector.configure(threshold_db=-70.0)

        assert detector.is_silent is False
        assert detector.threshold_db == -70.0
        # -60 dB is now above the threshold
        assert detector.observe(QUIET, timestamp=1.0) is False

    def test_reset(self):
        detector = SilenceDetector(threshold_db=-45.0, min_duration_ms=0)
        detector.observe(QUIET, timestamp=0.0)
        detector.reset()
        assert detector.is_silent is False
        assert detector.min_duration_ms == 0
