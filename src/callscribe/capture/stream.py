"""Live audio stream handles."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

# Called with each captured block (float32, mono) and its sample rate
FrameCallback = Callable[[NDArray[np.float32], int], None]


@runtime_checkable
class AudioTrack(Protocol):
    """A single live audio track produced by a capture backend."""

    label: str
    sample_rate: int

    @property
    def is_live(self) -> bool:
        """True until the track has been stopped."""
        ...

    def set_frame_callback(self, callback: FrameCallback | None) -> None:
        """Register the receiver of captured frames."""
        ...

    def start(self) -> None:
        """Begin delivering frames."""
        ...

    def stop(self) -> None:
        """Stop the track. Must be safe to call more than once."""
        ...


class AudioStreamHandle:
    """Owns zero or more live audio tracks for one acquisition.

    The handle is exclusively owned by whoever acquired it last. Releasing
    stops every track and is idempotent.
    """

    def __init__(self, tracks: list[AudioTrack] | None = None, label: str = "") -> None:
        self._tracks: list[AudioTrack] = list(tracks or [])
        self._label = label
        self._lock = threading.Lock()
        self._released = False
        self._started = False

    @property
    def audio_tracks(self) -> list[AudioTrack]:
        """Tracks carrying audio."""
        return list(self._tracks)

    @property
    def label(self) -> str:
        if self._label:
            return self._label
        return ", ".join(t.label for t in self._tracks)

    @property
    def sample_rate(self) -> int | None:
        """Sample rate of the first track, if any."""
        return self._tracks[0].sample_rate if self._tracks else None

    @property
    def released(self) -> bool:
        return self._released

    def on_frame(self, callback: FrameCallback | None) -> None:
        """Route frames from every track to ``callback``."""
        for track in self._tracks:
            track.set_frame_callback(callback)

    def start(self) -> None:
        """Start all tracks (no-op once released)."""
        with self._lock:
            if self._released or self._started:
                return
            self._started = True
        for track in self._tracks:
            track.start()

    def release(self) -> None:
        """Stop every track. Safe to call multiple times."""
        with self._lock:
            if self._released:
                return
            self._released = True

        for track in self._tracks:
            try:
                track.set_frame_callback(None)
                track.stop()
            except Exception as e:
                logger.warning(f"Failed to stop track {track.label!r}: {e}")
        logger.debug(f"Released stream handle ({len(self._tracks)} tracks)")
