"""Recognizer error codes, their handling class, and user-facing messages."""

from __future__ import annotations

from enum import Enum


class RecognitionErrorCode(str, Enum):
    """Error kinds a recognizer may report (browser-compatible strings)."""

    NO_SPEECH = "no-speech"
    ABORTED = "aborted"
    AUDIO_CAPTURE = "audio-capture"
    NETWORK = "network"
    NOT_ALLOWED = "not-allowed"
    SERVICE_NOT_ALLOWED = "service-not-allowed"
    BAD_GRAMMAR = "bad-grammar"
    LANGUAGE_NOT_SUPPORTED = "language-not-supported"


class ErrorHandling(str, Enum):
    """What the controller does with a reported error."""

    IGNORE = "ignore"
    RESTART = "restart"
    FAIL = "fail"


FATAL_CODES = frozenset(
    {
        RecognitionErrorCode.NOT_ALLOWED,
        RecognitionErrorCode.SERVICE_NOT_ALLOWED,
        RecognitionErrorCode.BAD_GRAMMAR,
        RecognitionErrorCode.LANGUAGE_NOT_SUPPORTED,
    }
)

ERROR_MESSAGES: dict[str, str] = {
    "no-speech": "No speech was detected. Please try again.",
    "aborted": "Speech recognition was aborted.",
    "audio-capture": "No microphone was found or microphone access was denied.",
    "network": "Network error occurred. Please check your connection.",
    "not-allowed": "Microphone access was denied. Please allow microphone access.",
    "service-not-allowed": "Speech recognition service is not allowed.",
    "bad-grammar": "Error in speech grammar or language configuration.",
    "language-not-supported": "The selected language is not supported.",
}

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."
UNSUPPORTED_MESSAGE = (
    "Speech recognition is not supported in this environment. "
    "Install a recognition engine and try again."
)
START_FAILED_MESSAGE = "Failed to start speech recognition. Please try again."
RESTARTS_EXHAUSTED_MESSAGE = (
    "Speech recognition stopped after repeated failures. Please try again."
)


def get_error_message(code: str) -> str:
    """Map an error code to its fixed human-readable message."""
    return ERROR_MESSAGES.get(str(code), UNKNOWN_ERROR_MESSAGE)


def classify_error(code: str, intentional_stop: bool = False) -> ErrorHandling:
    """Decide how the controller reacts to an error code.

    Args:
        code: Error code reported by the recognizer.
        intentional_stop: Whether the controller asked the recognizer to stop.

    Returns:
        IGNORE for no-speech and intentional aborts, FAIL for fatal codes,
        RESTART for everything else (including unknown codes).
    """
    try:
        known = RecognitionErrorCode(code)
    except ValueError:
        return ErrorHandling.RESTART

    if known in FATAL_CODES:
        return ErrorHandling.FAIL
    if known is RecognitionErrorCode.NO_SPEECH:
        return ErrorHandling.IGNORE
    if known is RecognitionErrorCode.ABORTED and intentional_stop:
        return ErrorHandling.IGNORE
    return ErrorHandling.RESTART
