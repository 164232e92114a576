"""Audio source acquisition.

Resolves a logical source (microphone, headphones, or one of the loopback
kinds) into a live stream, merging capture constraints and falling back from
loopback capture to direct input when needed.
"""

from callscribe.capture.manager import AudioSourceManager, merge_constraints
from callscribe.capture.models import (
    AcquisitionResult,
    AudioSourceKind,
    AudioSourceRequest,
    CaptureCapabilities,
    CaptureConstraints,
    CaptureOptions,
    CapturePath,
    DisplayCaptureOptions,
)
from callscribe.capture.protocol import AudioCaptureBackend
from callscribe.capture.stream import AudioStreamHandle, AudioTrack

__all__ = [
    "AcquisitionResult",
    "AudioCaptureBackend",
    "AudioSourceKind",
    "AudioSourceManager",
    "AudioSourceRequest",
    "AudioStreamHandle",
    "AudioTrack",
    "CaptureCapabilities",
    "CaptureConstraints",
    "CaptureOptions",
    "CapturePath",
    "DisplayCaptureOptions",
    "merge_constraints",
]
