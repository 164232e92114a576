"""Data models for audio source acquisition."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from callscribe.capture.stream import AudioStreamHandle


class AudioSourceKind(str, Enum):
    """Logical audio sources a session can be pinned to."""

    MICROPHONE = "microphone"
    HEADPHONES = "headphones"
    SYSTEM = "system"  # Loopback of everything the machine plays
    MEETING = "meeting"  # Conferencing application window
    MULTIMEDIA = "multimedia"  # Media playing in a tab
    VOIP = "voip"  # Softphone window

    @property
    def is_loopback(self) -> bool:
        """Whether the source is captured from played-back audio."""
        return self in LOOPBACK_KINDS


LOOPBACK_KINDS = frozenset(
    {
        AudioSourceKind.SYSTEM,
        AudioSourceKind.MEETING,
        AudioSourceKind.MULTIMEDIA,
        AudioSourceKind.VOIP,
    }
)


class CapturePath(str, Enum):
    """How an acquired stream was actually obtained."""

    DIRECT = "direct"
    LOOPBACK = "loopback"


@dataclass(frozen=True)
class CaptureOptions:
    """Caller-supplied capture overrides; None leaves the lower layer's value."""

    echo_cancellation: bool | None = None
    noise_suppression: bool | None = None
    auto_gain_control: bool | None = None
    sample_rate: int | None = None
    channel_count: int | None = None

    def overrides(self) -> dict[str, Any]:
        """Return only the fields that were set."""
        values = {
            "echo_cancellation": self.echo_cancellation,
            "noise_suppression": self.noise_suppression,
            "auto_gain_control": self.auto_gain_control,
            "sample_rate": self.sample_rate,
            "channel_count": self.channel_count,
        }
        return {k: v for k, v in values.items() if v is not None}


@dataclass(frozen=True)
class CaptureConstraints:
    """Fully merged constraints handed to the capture backend."""

    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True
    sample_rate: int = 16000
    channel_count: int = 1
    frame_duration_ms: int = 256
    device_id: int | None = None  # None = default input device

    def merged_with(self, **overrides: Any) -> CaptureConstraints:
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)

    @property
    def frame_size(self) -> int:
        """Samples per delivered frame."""
        return max(1, int(self.sample_rate * self.frame_duration_ms / 1000))

    def to_dict(self) -> dict[str, Any]:
        """Convert constraints to dictionary."""
        return {
            "echo_cancellation": self.echo_cancellation,
            "noise_suppression": self.noise_suppression,
            "auto_gain_control": self.auto_gain_control,
            "sample_rate": self.sample_rate,
            "channel_count": self.channel_count,
            "frame_duration_ms": self.frame_duration_ms,
            "device_id": self.device_id,
        }


@dataclass(frozen=True)
class DisplayCaptureOptions:
    """Hints for a screen/window/tab capture that should carry audio."""

    audio: CaptureConstraints
    display_surface: str = "monitor"  # monitor | window | browser
    prefer_current_tab: bool = False
    self_browser_surface: str = "exclude"
    system_audio: str = "include"
    # Video is requested at the smallest size the platform allows
    video_width: int = 1
    video_height: int = 1
    video_frame_rate: int = 1


@dataclass(frozen=True)
class AudioSourceRequest:
    """One acquisition attempt for a logical source."""

    kind: AudioSourceKind = AudioSourceKind.MICROPHONE
    capture_options: CaptureOptions = field(default_factory=CaptureOptions)


@dataclass
class AcquisitionResult:
    """A live stream plus how it was obtained."""

    handle: AudioStreamHandle
    kind: AudioSourceKind
    path: CapturePath
    constraints: CaptureConstraints
    fallback_reason: str | None = None

    @property
    def fell_back(self) -> bool:
        """True when a loopback request ended up on direct input."""
        return self.kind.is_loopback and self.path is CapturePath.DIRECT

    @property
    def supports_diarization(self) -> bool:
        """Mixed voices are only expected on a real loopback capture."""
        return self.path is CapturePath.LOOPBACK


@dataclass(frozen=True)
class CaptureCapabilities:
    """Result of probing the capture environment without capturing."""

    direct_input: bool
    display_capture: bool

    def supports(self, kind: AudioSourceKind) -> bool:
        """Whether the source kind can be attempted at all."""
        if kind.is_loopback:
            # Loopback kinds fall back to direct input
            return self.display_capture or self.direct_input
        return self.direct_input
