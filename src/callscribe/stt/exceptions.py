"""STT-specific exceptions."""

from callscribe.exceptions import CallscribeError


class RecognitionError(CallscribeError):
    """Base exception for speech recognition errors."""


class RecognizerUnavailableError(RecognitionError):
    """No recognition engine is available in this environment."""


class ModelNotFoundError(RecognitionError):
    """Required recognition model could not be loaded."""


class FatalRecognitionError(RecognitionError):
    """Recognizer reported an error that must not be retried."""

    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or code)


class RestartExhaustedError(RecognitionError):
    """Automatic restarts gave up after the configured number of attempts."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Recognition restarted {attempts} times without recovering")
