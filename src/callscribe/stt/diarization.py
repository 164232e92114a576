"""Energy-based two-speaker change heuristic.

This is not a speaker model. It assumes a loopback capture carrying two
alternating voices at different levels and toggles between two identities
when the frame energy jumps and stays changed for a few frames.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from callscribe.audio_meter import calculate_rms
from callscribe.stt.models import Speaker

logger = logging.getLogger(__name__)

NEUTRAL_CONFIDENCE = 0.5
MAX_SPEAKERS = 5


@dataclass
class DiarizationState:
    """Mutable per-session diarization state."""

    previous_energy: float = 0.0
    current_speaker_index: int = 0
    stability_counter: int = 0


@dataclass(frozen=True)
class SpeakerObservation:
    """Diarizer verdict for one frame."""

    speaker_id: str
    confidence: float
    changed: bool = False


def speaker_for_index(index: int) -> Speaker:
    """Stable identity for the n-th speaker (0-based)."""
    return Speaker(id=f"speaker_{index + 1}", display_label=f"Speaker {index + 1}")


def change_confidence(normalized_ratio: float) -> float:
    """Map an energy ratio in (0, 1] to a confidence in [0.5, 1.0].

    Larger energy jumps (smaller ratios) give higher confidence.
    """
    return float(min(1.0, max(NEUTRAL_CONFIDENCE, 1.0 - normalized_ratio)))


class SpeakerDiarizer:
    """Per-frame speaker attribution by energy-ratio change detection."""

    def __init__(
        self,
        energy_floor: float = 0.01,
        change_threshold: float = 0.5,
        debounce_frames: int = 3,
        max_speakers: int = MAX_SPEAKERS,
    ) -> None:
        """Initialize the diarizer.

        Args:
            energy_floor: RMS below which a frame is treated as silence.
            change_threshold: Normalized ratio below which a frame counts
                toward a speaker change.
            debounce_frames: Consecutive qualifying frames needed to toggle.
            max_speakers: Cap on identities handed out (the toggle uses two).
        """
        self._energy_floor = energy_floor
        self._change_threshold = change_threshold
        self._debounce_frames = debounce_frames
        self._max_speakers = max(1, min(max_speakers, MAX_SPEAKERS))
        self._state = DiarizationState()
        self._speakers: dict[int, Speaker] = {}
        self._last = SpeakerObservation(speaker_id=self._speaker(0).id, confidence=NEUTRAL_CONFIDENCE)

    @property
    def speakers(self) -> list[Speaker]:
        """Speakers handed out so far, in order of first appearance."""
        return [self._speakers[i] for i in sorted(self._speakers)]

    @property
    def current_speaker(self) -> Speaker:
        """Speaker attributed to the most recent frame, with its confidence."""
        speaker = self._speaker(self._state.current_speaker_index)
        return Speaker(speaker.id, speaker.display_label, self._last.confidence)

    def _speaker(self, index: int) -> Speaker:
        if index not in self._speakers and len(self._speakers) < self._max_speakers:
            self._speakers[index] = speaker_for_index(index)
        return self._speakers.get(index, self._speakers[0])

    def _toggle_index(self) -> int:
        if self._max_speakers < 2:
            return 0
        return 1 - self._state.current_speaker_index

    def observe(self, frame: NDArray[np.float32]) -> SpeakerObservation:
        """Attribute one frame to a speaker.

        Args:
            frame: Audio samples (float32, normalized).

        Returns:
            Current speaker id and how confident the attribution is.
        """
        energy = calculate_rms(frame)
        state = self._state
        current_id = self._speaker(state.current_speaker_index).id

        if energy < self._energy_floor:
            # Silence is not a speaker change
            self._last = SpeakerObservation(current_id, NEUTRAL_CONFIDENCE)
            return self._last

        if state.previous_energy <= 0.0:
            state.previous_energy = energy
            self._last = SpeakerObservation(current_id, NEUTRAL_CONFIDENCE)
            return self._last

        ratio = energy / state.previous_energy
        normalized = min(ratio, 1.0 / ratio)
        state.previous_energy = energy
        confidence = change_confidence(normalized)

        if normalized >= self._change_threshold:
            state.stability_counter = 0
            self._last = SpeakerObservation(current_id, confidence)
            return self._last

        state.stability_counter += 1
        if state.stability_counter < self._debounce_frames:
            self._last = SpeakerObservation(current_id, confidence)
            return self._last

        state.stability_counter = 0
        state.current_speaker_index = self._toggle_index()
        new_id = self._speaker(state.current_speaker_index).id
        logger.debug(f"Speaker change {current_id} -> {new_id} (ratio={normalized:.2f})")
        self._last = SpeakerObservation(new_id, confidence, changed=new_id != current_id)
        return self._last

    def reset(self) -> None:
        """Start a new session: forget energy history and speakers."""
        self._state = DiarizationState()
        self._speakers.clear()
        self._last = SpeakerObservation(speaker_id=self._speaker(0).id, confidence=NEUTRAL_CONFIDENCE)
