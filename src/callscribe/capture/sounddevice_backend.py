"""Capture backend built on sounddevice (PortAudio).

Direct input opens an ``sd.InputStream`` on the requested device. Loopback
sources have no screen-sharing dialog on the desktop, so display capture is
realised by recording the PulseAudio/PipeWire monitor of the default output
sink through the ``pulse`` PortAudio device.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import numpy as np
import sounddevice as sd
from numpy.typing import NDArray

from callscribe.audio_meter import to_mono
from callscribe.capture.models import CaptureConstraints, DisplayCaptureOptions
from callscribe.capture.stream import AudioStreamHandle, FrameCallback
from callscribe.devices import (
    AudioDevice,
    default_monitor_source,
    find_pulse_device_id,
    list_input_devices,
    pactl_available,
)
from callscribe.exceptions import (
    NoAudioTrackError,
    PermissionDeniedError,
    UnsupportedEnvironmentError,
)

logger = logging.getLogger(__name__)

_PERMISSION_MARKERS = ("permission", "denied", "not allowed", "not authorized")


def _classify_portaudio_error(error: Exception, label: str) -> Exception:
    message = str(error).lower()
    if any(marker in message for marker in _PERMISSION_MARKERS):
        return PermissionDeniedError(f"Access to {label} was denied: {error}")
    return NoAudioTrackError(f"Failed to open {label}: {error}")


class SoundDeviceTrack:
    """One PortAudio input stream exposed as an audio track."""

    def __init__(
        self,
        label: str,
        device: int | None,
        sample_rate: int,
        channels: int,
        blocksize: int,
        pulse_source: str | None = None,
    ) -> None:
        self.label = label
        self.sample_rate = sample_rate
        self._callback: FrameCallback | None = None
        self._live = True
        self._pulse_source = pulse_source
        self._old_pulse_source = os.environ.get("PULSE_SOURCE")

        if pulse_source:
            os.environ["PULSE_SOURCE"] = pulse_source

        try:
            self._stream = sd.InputStream(
                device=device,
                samplerate=sample_rate,
                channels=channels,
                dtype=np.float32,
                blocksize=blocksize,
                callback=self._audio_handler,
            )
        except Exception:
            self._restore_pulse_source()
            raise

    @property
    def is_live(self) -> bool:
        return self._live

    def set_frame_callback(self, callback: FrameCallback | None) -> None:
        self._callback = callback

    def _audio_handler(
        self,
        indata: NDArray[np.float32],
        frames: int,
        time: Any,
        status: sd.CallbackFlags,
    ) -> None:
        if status:
            logger.debug(f"Input status on {self.label!r}: {status}")

        callback = self._callback
        if callback is not None:
            callback(to_mono(indata.copy()), self.sample_rate)

    def start(self) -> None:
        try:
            self._stream.start()
        except sd.PortAudioError as e:
            raise _classify_portaudio_error(e, self.label) from e

    def stop(self) -> None:
        if not self._live:
            return
        self._live = False
        try:
            self._stream.stop()
            self._stream.close()
        finally:
            self._restore_pulse_source()

    def _restore_pulse_source(self) -> None:
        if not self._pulse_source:
            return
        if self._old_pulse_source is not None:
            os.environ["PULSE_SOURCE"] = self._old_pulse_source
        else:
            os.environ.pop("PULSE_SOURCE", None)


class SoundDeviceBackend:
    """AudioCaptureBackend implementation for desktop PortAudio hosts."""

    def enumerate_devices(self) -> list[AudioDevice]:
        return list_input_devices()

    def supports_input_capture(self) -> bool:
        try:
            return bool(list_input_devices())
        except UnsupportedEnvironmentError:
            return False

    def supports_display_capture(self) -> bool:
        return pactl_available()

    def _open_track(
        self,
        constraints: CaptureConstraints,
        label: str,
        device: int | None,
        pulse_source: str | None = None,
    ) -> SoundDeviceTrack:
        try:
            return SoundDeviceTrack(
                label=label,
                device=device,
                sample_rate=constraints.sample_rate,
                channels=constraints.channel_count,
                blocksize=constraints.frame_size,
                pulse_source=pulse_source,
            )
        except sd.PortAudioError as e:
            if "sample rate" not in str(e).lower():
                raise _classify_portaudio_error(e, label) from e

        # Device refuses the requested rate: capture at its native rate and
        # let the recognizer resample
        try:
            native_rate = int(sd.query_devices(device, "input")["default_samplerate"])  # type: ignore[index]
            logger.info(f"{label}: {constraints.sample_rate} Hz unsupported, using {native_rate} Hz")
            return SoundDeviceTrack(
                label=label,
                device=device,
                sample_rate=native_rate,
                channels=constraints.channel_count,
                blocksize=max(1, int(native_rate * constraints.frame_duration_ms / 1000)),
                pulse_source=pulse_source,
            )
        except sd.PortAudioError as e:
            raise _classify_portaudio_error(e, label) from e

    def open_input(self, constraints: CaptureConstraints) -> AudioStreamHandle:
        # PortAudio has no echo/noise/gain processing; the flags are advisory here
        logger.debug(f"Opening input device {constraints.device_id} with {constraints.to_dict()}")
        devices = self.enumerate_devices()
        if not devices:
            raise NoAudioTrackError("No audio input devices found")

        label = "default input"
        for dev in devices:
            if constraints.device_id is None and dev.is_default:
                label = dev.name
            elif dev.id == constraints.device_id:
                label = dev.name

        track = self._open_track(constraints, label, constraints.device_id)
        return AudioStreamHandle([track], label=label)

    def open_display(self, options: DisplayCaptureOptions) -> AudioStreamHandle:
        if not pactl_available():
            raise UnsupportedEnvironmentError(
                "Loopback capture requires PulseAudio or PipeWire (pactl not found)"
            )

        logger.debug(
            f"Display capture requested: surface={options.display_surface}, "
            f"prefer_current_tab={options.prefer_current_tab}, system_audio={options.system_audio}"
        )

        monitor = default_monitor_source()
        pulse_id = find_pulse_device_id(self.enumerate_devices())
        if monitor is None or pulse_id is None:
            # Capture "succeeded" but nothing carries audio
            logger.warning("No monitor source available for loopback capture")
            return AudioStreamHandle([], label="display")

        track = self._open_track(
            options.audio,
            label=monitor.description,
            device=pulse_id,
            pulse_source=monitor.name,
        )
        return AudioStreamHandle([track], label=monitor.description)
