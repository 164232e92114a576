"""Data models for live recognition and transcript assembly."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SessionState(str, Enum):
    """Recognition controller lifecycle."""

    IDLE = "idle"
    STARTING = "starting"
    LISTENING = "listening"
    RESTARTING = "restarting"
    STOPPED = "stopped"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        """Whether a session is in progress (recording)."""
        return self in (SessionState.STARTING, SessionState.LISTENING, SessionState.RESTARTING)


@dataclass(frozen=True)
class RecognitionAlternative:
    """One ranked hypothesis for a recognized span."""

    transcript: str
    confidence: float = 0.0


@dataclass(frozen=True)
class RecognitionResult:
    """One recognizer result: ranked alternatives plus a finality flag."""

    alternatives: tuple[RecognitionAlternative, ...]
    is_final: bool

    @property
    def text(self) -> str:
        """Transcript of the top-ranked alternative."""
        return self.alternatives[0].transcript if self.alternatives else ""

    @property
    def alternatives_considered(self) -> int:
        return len(self.alternatives)


@dataclass(frozen=True)
class ResultEvent:
    """Ordered results delivered by the recognizer from ``result_index`` on."""

    results: tuple[RecognitionResult, ...]
    result_index: int = 0

    def pending(self) -> tuple[RecognitionResult, ...]:
        """Results that changed since the previous event."""
        return self.results[self.result_index :]


@dataclass(frozen=True)
class Speaker:
    """A diarized speaker identity, stable for one recording session."""

    id: str
    display_label: str
    confidence: float = 0.5

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_label": self.display_label,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class TranscriptSegment:
    """A finalized piece of transcript text."""

    text: str
    timestamp_ms: int
    speaker: Speaker | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert segment to dictionary."""
        return {
            "text": self.text,
            "timestamp_ms": self.timestamp_ms,
            "speaker": self.speaker.to_dict() if self.speaker else None,
        }


@dataclass(frozen=True)
class TranscriptSnapshot:
    """Everything collaborators (UI, persistence) may read about a session."""

    transcript: str = ""
    segments: tuple[TranscriptSegment, ...] = ()
    interim_text: str = ""
    speakers: tuple[Speaker, ...] = ()
    is_recording: bool = False
    error: str | None = None
    state: SessionState = SessionState.IDLE
    source_kind: str | None = None
    capture_path: str | None = None
    is_silent: bool = False
    is_inactive: bool = False


@dataclass
class CallRecord:
    """A finished call, ready to hand to a persistence collaborator."""

    start_time: datetime
    end_time: datetime
    transcript: str
    segments: list[TranscriptSegment] = field(default_factory=list)
    source_kind: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    tags: list[str] = field(default_factory=list)
    notes: str | None = None

    @property
    def duration_s(self) -> int:
        """Whole seconds between start and end."""
        return int((self.end_time - self.start_time).total_seconds())

    def to_dict(self) -> dict[str, Any]:
        """Convert record to dictionary."""
        return {
            "id": self.id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_s": self.duration_s,
            "transcript": self.transcript,
            "source_kind": self.source_kind,
            "segments": [s.to_dict() for s in self.segments],
            "tags": self.tags,
            "notes": self.notes,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert record to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def to_text(self) -> str:
        """Plain text with a speaker header whenever the speaker changes."""
        lines: list[str] = []
        current_speaker = ""
        for segment in self.segments:
            label = segment.speaker.display_label if segment.speaker else ""
            if label and label != current_speaker:
                current_speaker = label
                lines.append(f"\n[{label}]")
            lines.append(segment.text)
        return "\n".join(lines).strip()
