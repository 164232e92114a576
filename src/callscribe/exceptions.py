"""Custom exceptions for Callscribe."""


class CallscribeError(Exception):
    """Base exception for all Callscribe errors."""


class ConfigError(CallscribeError):
    """Configuration-related errors."""


class SessionError(CallscribeError):
    """Misuse of the live transcription session surface."""


class AcquisitionError(CallscribeError):
    """Audio source could not be acquired."""

    user_message = "Could not access the selected audio source. Please try again."


class PermissionDeniedError(AcquisitionError):
    """Access to the capture device or display was refused."""

    user_message = "Microphone access was denied. Please allow microphone access."


class NoAudioTrackError(AcquisitionError):
    """Capture succeeded but produced no usable audio track."""

    user_message = "No audio was captured from the selected source. Please check your audio devices."


class UnsupportedEnvironmentError(AcquisitionError):
    """The capture API required for the source is not available."""

    user_message = "Audio capture is not supported in this environment."


# STT-related exceptions are in callscribe.stt.exceptions
