"""Frame-level silence detection with a minimum-duration latch."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from callscribe.audio_meter import calculate_rms, linear_to_db

logger = logging.getLogger(__name__)

# dB value reported for digital silence
SILENCE_FLOOR_DB = -120.0


@dataclass
class SilenceState:
    """Mutable detector state, reset on reconfiguration."""

    silence_start: float | None = None
    is_silent: bool = False


class SilenceDetector:
    """Voice-activity classifier over RMS level in decibels.

    A frame below ``threshold_db`` starts (or continues) a silence timer.
    Once the timer has run for ``min_duration_ms`` the detector reports
    silence and stays latched until a frame at or above the threshold
    arrives, which clears both timer and latch immediately.
    """

    def __init__(
        self,
        threshold_db: float,
        min_duration_ms: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the detector.

        Args:
            threshold_db: Level below which a frame counts as silent.
            min_duration_ms: Continuous silence required before reporting.
            clock: Seconds source used when frames carry no timestamp.
        """
        self._threshold_db = threshold_db
        self._min_duration_s = min_duration_ms / 1000.0
        self._clock = clock
        self._state = SilenceState()
        self._last_db = SILENCE_FLOOR_DB

    @property
    def threshold_db(self) -> float:
        return self._threshold_db

    @property
    def min_duration_ms(self) -> float:
        return self._min_duration_s * 1000.0

    @property
    def is_silent(self) -> bool:
        return self._state.is_silent

    @property
    def last_db(self) -> float:
        """Level of the most recent frame."""
        return self._last_db

    def configure(self, threshold_db: float | None = None, min_duration_ms: float | None = None) -> None:
        """Change thresholds; resets the detector state."""
        if threshold_db is not None:
            self._threshold_db = threshold_db
        if min_duration_ms is not None:
            self._min_duration_s = min_duration_ms / 1000.0
        self.reset()

    def observe(self, frame: NDArray[np.float32], timestamp: float | None = None) -> bool:
        """Classify one frame.

        Args:
            frame: Audio samples (float32, normalized).
            timestamp: Capture time in seconds; the clock is read when None.

        Returns:
            True once silence has persisted for the minimum duration.
        """
        now = self._clock() if timestamp is None else timestamp
        self._last_db = linear_to_db(calculate_rms(frame), SILENCE_FLOOR_DB)

        if self._last_db >= self._threshold_db:
            if self._state.is_silent:
                logger.debug(f"Sound resumed at {self._last_db:.1f} dB")
            self._state.silence_start = None
            self._state.is_silent = False
            return False

        if self._state.silence_start is None:
            self._state.silence_start = now

        if not self._state.is_silent and now - self._state.silence_start >= self._min_duration_s:
            self._state.is_silent = True
            logger.debug(f"Silence for {now - self._state.silence_start:.2f}s")

        return self._state.is_silent

    def reset(self) -> None:
        """Clear timer and latch."""
        self._state = SilenceState()
        self._last_db = SILENCE_FLOOR_DB
