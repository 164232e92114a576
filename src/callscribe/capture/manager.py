"""Resolve logical audio source requests into live streams."""

from __future__ import annotations

import logging
import threading

from callscribe.capture.models import (
    AcquisitionResult,
    AudioSourceKind,
    AudioSourceRequest,
    CaptureCapabilities,
    CaptureConstraints,
    CapturePath,
    DisplayCaptureOptions,
)
from callscribe.capture.protocol import AudioCaptureBackend
from callscribe.capture.stream import AudioStreamHandle
from callscribe.config import CaptureConfig
from callscribe.devices import find_headset_device
from callscribe.exceptions import AcquisitionError, NoAudioTrackError

logger = logging.getLogger(__name__)

# Played-back audio is already mixed: echo cancellation and gain control
# only add artifacts
LOOPBACK_OVERRIDES = {
    "echo_cancellation": False,
    "auto_gain_control": False,
}

# Surface hints per loopback kind
DISPLAY_HINTS: dict[AudioSourceKind, dict[str, object]] = {
    AudioSourceKind.SYSTEM: {"display_surface": "monitor", "prefer_current_tab": False},
    AudioSourceKind.MEETING: {"display_surface": "window", "prefer_current_tab": False},
    AudioSourceKind.MULTIMEDIA: {"display_surface": "browser", "prefer_current_tab": True},
    AudioSourceKind.VOIP: {"display_surface": "window", "prefer_current_tab": False},
}


def default_constraints(config: CaptureConfig | None = None) -> CaptureConstraints:
    """Built-in capture defaults (16 kHz mono, all processing enabled)."""
    config = config or CaptureConfig()
    return CaptureConstraints(
        echo_cancellation=config.echo_cancellation,
        noise_suppression=config.noise_suppression,
        auto_gain_control=config.auto_gain_control,
        sample_rate=config.sample_rate,
        channel_count=config.channels,
        frame_duration_ms=config.frame_duration_ms,
    )


def merge_constraints(
    request: AudioSourceRequest,
    defaults: CaptureConstraints | None = None,
) -> CaptureConstraints:
    """Merge defaults, per-kind overrides and caller overrides (highest wins).

    Args:
        request: Source request carrying the caller's capture options.
        defaults: Built-in constraints; library defaults when None.

    Returns:
        Merged constraints for the acquisition attempt.
    """
    constraints = defaults or default_constraints()
    if request.kind.is_loopback:
        constraints = constraints.merged_with(**LOOPBACK_OVERRIDES)
    return constraints.merged_with(**request.capture_options.overrides())


def display_options_for(kind: AudioSourceKind, constraints: CaptureConstraints) -> DisplayCaptureOptions:
    """Display-capture hints for a loopback source kind."""
    hints = DISPLAY_HINTS.get(kind, {})
    return DisplayCaptureOptions(audio=constraints, **hints)  # type: ignore[arg-type]


class AudioSourceManager:
    """Acquires audio streams for a recording session.

    Direct-input kinds open an input device (for headphones, a headset is
    looked up by label first). Loopback kinds try a display capture carrying
    audio and fall back to direct input with the same constraints when that
    throws or yields no audio track. The previously held stream is always
    released before a new acquisition.
    """

    def __init__(
        self,
        backend: AudioCaptureBackend,
        capture_config: CaptureConfig | None = None,
    ) -> None:
        self._backend = backend
        self._defaults = default_constraints(capture_config)
        self._current: AcquisitionResult | None = None
        self._lock = threading.Lock()

    @property
    def current(self) -> AcquisitionResult | None:
        """The most recent successful acquisition, if not yet released."""
        return self._current

    def probe_capabilities(self) -> CaptureCapabilities:
        """Report which capture paths exist without capturing anything."""
        return CaptureCapabilities(
            direct_input=self._backend.supports_input_capture(),
            display_capture=self._backend.supports_display_capture(),
        )

    def acquire(self, request: AudioSourceRequest) -> AcquisitionResult:
        """Acquire a live stream for ``request``.

        Raises:
            PermissionDeniedError: Capture access was refused.
            NoAudioTrackError: Nothing produced an audio track.
            UnsupportedEnvironmentError: The capture API is missing.
        """
        self.release()

        constraints = merge_constraints(request, self._defaults)
        logger.info(f"Acquiring {request.kind.value} source")

        if request.kind.is_loopback:
            result = self._acquire_loopback(request.kind, constraints)
        else:
            result = self._acquire_direct(request.kind, constraints)

        with self._lock:
            self._current = result
        return result

    def release(self) -> None:
        """Release the currently held stream. Idempotent."""
        with self._lock:
            current = self._current
            self._current = None
        if current is not None:
            current.handle.release()
            logger.debug(f"Released {current.kind.value} source")

    def _resolve_direct_constraints(
        self,
        kind: AudioSourceKind,
        constraints: CaptureConstraints,
    ) -> CaptureConstraints:
        if kind is not AudioSourceKind.HEADPHONES:
            return constraints

        try:
            devices = self._backend.enumerate_devices()
        except AcquisitionError as e:
            logger.warning(f"Device enumeration failed, using default input: {e}")
            return constraints

        headset = find_headset_device(devices)
        if headset is None:
            logger.info("No headset found, using default input device")
            return constraints

        logger.info(f"Using headset device: {headset.label}")
        return constraints.merged_with(device_id=headset.id)

    def _open_direct(self, constraints: CaptureConstraints) -> AudioStreamHandle:
        handle = self._backend.open_input(constraints)
        if not handle.audio_tracks:
            handle.release()
            raise NoAudioTrackError("Input capture produced no audio track")
        return handle

    def _acquire_direct(
        self,
        kind: AudioSourceKind,
        constraints: CaptureConstraints,
    ) -> AcquisitionResult:
        constraints = self._resolve_direct_constraints(kind, constraints)
        handle = self._open_direct(constraints)
        return AcquisitionResult(
            handle=handle,
            kind=kind,
            path=CapturePath.DIRECT,
            constraints=constraints,
        )

    def _acquire_loopback(
        self,
        kind: AudioSourceKind,
        constraints: CaptureConstraints,
    ) -> AcquisitionResult:
        options = display_options_for(kind, constraints)
        reason: str
        try:
            handle = self._backend.open_display(options)
        except Exception as e:
            reason = f"{kind.value} capture failed: {e}"
        else:
            if handle.audio_tracks:
                return AcquisitionResult(
                    handle=handle,
                    kind=kind,
                    path=CapturePath.LOOPBACK,
                    constraints=constraints,
                )
            handle.release()
            reason = f"{kind.value} capture produced no audio track"

        logger.warning(f"{reason}, falling back to direct input")
        handle = self._open_direct(constraints)
        return AcquisitionResult(
            handle=handle,
            kind=kind,
            path=CapturePath.DIRECT,
            constraints=constraints,
            fallback_reason=reason,
        )
