"""Protocol definition for audio capture backends."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from callscribe.capture.models import CaptureConstraints, DisplayCaptureOptions
from callscribe.capture.stream import AudioStreamHandle
from callscribe.devices import AudioDevice


@runtime_checkable
class AudioCaptureBackend(Protocol):
    """Raw audio-capture primitive consumed by the source manager.

    Backends raise the ``AcquisitionError`` family on failure. A display
    capture that yields no audio returns a handle with zero audio tracks
    rather than raising.
    """

    def open_input(self, constraints: CaptureConstraints) -> AudioStreamHandle:
        """Capture directly from an input device.

        Args:
            constraints: Merged constraints; ``device_id`` None means default.

        Returns:
            Handle owning the opened tracks.
        """
        ...

    def open_display(self, options: DisplayCaptureOptions) -> AudioStreamHandle:
        """Capture a display surface with its audio.

        Args:
            options: Surface hints plus the merged audio constraints.

        Returns:
            Handle owning whatever audio tracks the capture produced.
        """
        ...

    def enumerate_devices(self) -> list[AudioDevice]:
        """List input devices with kind and human-readable label."""
        ...

    def supports_input_capture(self) -> bool:
        """Whether direct device capture is available."""
        ...

    def supports_display_capture(self) -> bool:
        """Whether display/loopback capture is available."""
        ...
