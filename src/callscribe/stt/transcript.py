"""Canonical transcript model: finalized segments plus one interim buffer."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from callscribe.stt.models import Speaker, TranscriptSegment

logger = logging.getLogger(__name__)

# Applied to interim text before it is promoted to a segment; returns the
# text to keep (possibly empty)
TextFilter = Callable[[str], str]


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class TranscriptAssembler:
    """Owns the transcript exposed to UI and persistence collaborators.

    ``full_transcript()`` always equals the finalized segment texts joined
    by single spaces, followed by the interim buffer when one is present.
    Segments are append-only and their timestamps never decrease.
    """

    def __init__(self, clock_ms: Callable[[], int] = _wall_clock_ms) -> None:
        self._clock_ms = clock_ms
        self._segments: list[TranscriptSegment] = []
        self._interim = ""
        self._last_timestamp_ms = 0
        self._lock = threading.Lock()

    @property
    def interim(self) -> str:
        """Current not-yet-final text."""
        with self._lock:
            return self._interim

    def segments(self) -> list[TranscriptSegment]:
        """Finalized segments in arrival order."""
        with self._lock:
            return list(self._segments)

    def speakers(self) -> list[Speaker]:
        """Distinct speakers attributed in the transcript, by first appearance."""
        seen: dict[str, Speaker] = {}
        with self._lock:
            for segment in self._segments:
                if segment.speaker is not None and segment.speaker.id not in seen:
                    seen[segment.speaker.id] = segment.speaker
        return list(seen.values())

    def _append_locked(self, text: str, speaker: Speaker | None) -> TranscriptSegment | None:
        text = text.strip()
        if not text:
            return None
        timestamp = max(self._clock_ms(), self._last_timestamp_ms)
        self._last_timestamp_ms = timestamp
        segment = TranscriptSegment(text=text, timestamp_ms=timestamp, speaker=speaker)
        self._segments.append(segment)
        return segment

    def append_final(self, text: str, speaker: Speaker | None = None) -> TranscriptSegment | None:
        """Append a finalized segment.

        Args:
            text: Final text; blank text is ignored.
            speaker: Speaker attributed to the text, if diarization is active.

        Returns:
            The new segment, or None when nothing was appended.
        """
        with self._lock:
            return self._append_locked(text, speaker)

    def set_interim(self, text: str) -> None:
        """Replace the interim buffer."""
        with self._lock:
            self._interim = text.strip()

    def flush_interim_as_final(
        self,
        speaker: Speaker | None = None,
        text_filter: TextFilter | None = None,
    ) -> TranscriptSegment | None:
        """Promote the interim buffer to a finalized segment.

        No-op when the buffer is empty.

        Args:
            speaker: Speaker to attribute the flushed text to.
            text_filter: Optional transform (e.g. duplicate suppression).

        Returns:
            The new segment, or None when nothing was appended.
        """
        with self._lock:
            text = self._interim
            self._interim = ""
        if not text:
            return None

        if text_filter is not None:
            text = text_filter(text)

        with self._lock:
            segment = self._append_locked(text, speaker)
        if segment is not None:
            logger.debug(f"Flushed interim text as final: {segment.text!r}")
        return segment

    def full_transcript(self) -> str:
        """Finalized text plus the interim buffer, space-joined."""
        with self._lock:
            parts = [s.text for s in self._segments]
            if self._interim:
                parts.append(self._interim)
        return " ".join(parts)

    def reset(self) -> None:
        """Drop all segments and the interim buffer."""
        with self._lock:
            self._segments.clear()
            self._interim = ""
            self._last_timestamp_ms = 0
