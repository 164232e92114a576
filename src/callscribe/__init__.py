"""Callscribe - Live call transcription from microphone or system audio."""

from callscribe.audio_meter import calculate_rms, linear_to_db
from callscribe.capture import AudioSourceKind, AudioSourceManager, CapturePath
from callscribe.config import Settings, get_settings
from callscribe.devices import AudioDevice, list_input_devices, list_monitor_sources
from callscribe.exceptions import (
    AcquisitionError,
    CallscribeError,
    ConfigError,
    NoAudioTrackError,
    PermissionDeniedError,
    SessionError,
    UnsupportedEnvironmentError,
)

__version__ = "0.1.0"

__all__ = [
    "AcquisitionError",
    "AudioDevice",
    "AudioSourceKind",
    "AudioSourceManager",
    "CallscribeError",
    "CapturePath",
    "ConfigError",
    "NoAudioTrackError",
    "PermissionDeniedError",
    "SessionError",
    "Settings",
    "UnsupportedEnvironmentError",
    "calculate_rms",
    "get_settings",
    "linear_to_db",
    "list_input_devices",
    "list_monitor_sources",
]


# Lazy imports for the recognition stack
def __getattr__(name: str):
    """Lazy import for session and STT components."""
    if name == "stt":
        from callscribe import stt

        return stt
    if name in ("LiveTranscriptionSession", "create_session"):
        from callscribe import session

        return getattr(session, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
