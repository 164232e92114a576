"""Audio device enumeration, headset detection and loopback sources."""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from dataclasses import dataclass, field

import sounddevice as sd

from callscribe.exceptions import UnsupportedEnvironmentError

logger = logging.getLogger(__name__)

# Substrings that mark an input device as a headset (matched case-insensitively)
HEADSET_PATTERNS = ("headphone", "headset", "earphone", "bluetooth")

# PulseAudio/PipeWire sources that carry played-back audio
MONITOR_PATTERNS = [
    r"\.monitor$",
    r"^monitor of ",
]


@dataclass
class AudioDevice:
    """An audio input device as reported by the capture layer."""

    id: int
    name: str
    channels: int
    sample_rate: float
    is_default: bool = False
    kind: str = "audioinput"
    pulse_source: str | None = field(default=None)  # PulseAudio source name

    @property
    def label(self) -> str:
        """Human-readable device label."""
        return self.name

    @property
    def is_headset(self) -> bool:
        """Whether the label suggests a headset or headphones."""
        return is_headset_label(self.name)

    def __str__(self) -> str:
        default_marker = " (default)" if self.is_default else ""
        rate = int(self.sample_rate)
        return f"[{self.id}] {self.name}{default_marker} - {self.channels}ch @ {rate}Hz"


@dataclass
class DeviceCategories:
    """Input devices split into headsets and everything else."""

    headphones: list[AudioDevice] = field(default_factory=list)
    microphones: list[AudioDevice] = field(default_factory=list)


@dataclass
class MonitorSource:
    """PulseAudio/PipeWire monitor source (loopback of an output sink)."""

    name: str
    description: str
    sample_rate: int
    channels: int


def is_headset_label(label: str) -> bool:
    """Check a device label against the headset substrings."""
    label_lower = label.lower()
    return any(pattern in label_lower for pattern in HEADSET_PATTERNS)


def _is_monitor(name: str) -> bool:
    name_lower = name.lower()
    return any(re.search(pattern, name_lower) for pattern in MONITOR_PATTERNS)


def list_input_devices() -> list[AudioDevice]:
    """List all audio input devices known to PortAudio.

    Raises:
        UnsupportedEnvironmentError: If PortAudio cannot be queried
    """
    try:
        devices = sd.query_devices()
        default_input = sd.default.device[0]
    except sd.PortAudioError as e:
        raise UnsupportedEnvironmentError(f"Cannot query audio devices: {e}") from e

    input_devices: list[AudioDevice] = []
    for idx, dev in enumerate(devices):  # type: ignore[arg-type]
        if dev["max_input_channels"] <= 0:  # type: ignore[index]
            continue

        input_devices.append(
            AudioDevice(
                id=idx,
                name=dev["name"],  # type: ignore[index]
                channels=dev["max_input_channels"],  # type: ignore[index]
                sample_rate=dev["default_samplerate"],  # type: ignore[index]
                is_default=idx == default_input,
            )
        )

    return input_devices


def find_headset_device(devices: list[AudioDevice]) -> AudioDevice | None:
    """Return the first device whose label looks like a headset, if any."""
    for device in devices:
        if device.is_headset:
            return device
    return None


def categorize_devices(devices: list[AudioDevice]) -> DeviceCategories:
    """Split devices into headphones and microphones by label."""
    categories = DeviceCategories()
    for device in devices:
        if device.is_headset:
            categories.headphones.append(device)
        else:
            categories.microphones.append(device)
    return categories


def suggest_source_kind(devices: list[AudioDevice]) -> str:
    """Prefer headphones when a headset is plugged in, else the microphone."""
    return "headphones" if find_headset_device(devices) is not None else "microphone"


def find_pulse_device_id(devices: list[AudioDevice] | None = None) -> int | None:
    """Find the PortAudio device that routes through pulse or pipewire."""
    if devices is None:
        devices = list_input_devices()
    for dev in devices:
        if dev.name in ("pipewire", "pulse"):
            return dev.id
    return None


def pactl_available() -> bool:
    """Whether the PulseAudio control utility is installed."""
    return shutil.which("pactl") is not None


def _run_pactl(*args: str) -> str | None:
    try:
        result = subprocess.run(
            ["pactl", *args],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout


def _parse_descriptions(output: str) -> dict[str, str]:
    descriptions: dict[str, str] = {}
    current: str | None = None
    for line in output.split("\n"):
        stripped = line.strip()
        if stripped.startswith("Name:"):
            current = stripped.split("Name:", 1)[1].strip()
        elif current and stripped.startswith("Description:"):
            descriptions[current] = stripped.split("Description:", 1)[1].strip()
            current = None
    return descriptions


def list_monitor_sources() -> list[MonitorSource]:
    """Query PulseAudio/PipeWire for monitor sources.

    Returns:
        List of MonitorSource objects, or empty list if pactl is unavailable
    """
    output = _run_pactl("list", "sources", "short")
    if output is None:
        return []

    descriptions = _parse_descriptions(_run_pactl("list", "sources") or "")

    sources: list[MonitorSource] = []
    for line in output.strip().split("\n"):
        if not line:
            continue
        parts = line.split("\t")
        if len(parts) < 5:
            continue

        name = parts[1]
        if not _is_monitor(name):
            continue

        # Format looks like "s16le 2ch 48000Hz"
        fmt = parts[4]
        channels = 2
        sample_rate = 48000

        ch_match = re.search(r"(\d+)ch", fmt)
        if ch_match:
            channels = int(ch_match.group(1))

        rate_match = re.search(r"(\d+)Hz", fmt)
        if rate_match:
            sample_rate = int(rate_match.group(1))

        sources.append(
            MonitorSource(
                name=name,
                description=descriptions.get(name, name),
                sample_rate=sample_rate,
                channels=channels,
            )
        )

    return sources


def default_monitor_source(sources: list[MonitorSource] | None = None) -> MonitorSource | None:
    """Pick the monitor of the default sink, else the first monitor found."""
    if sources is None:
        sources = list_monitor_sources()
    if not sources:
        return None

    default_sink = (_run_pactl("get-default-sink") or "").strip()
    if default_sink:
        for src in sources:
            if src.name == f"{default_sink}.monitor":
                return src

    logger.debug(f"Default sink monitor not found, using {sources[0].name}")
    return sources[0]
