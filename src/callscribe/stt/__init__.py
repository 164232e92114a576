"""Live speech recognition and transcript assembly.

This module provides:
- A resilient recognition controller with automatic restarts and backoff
- Frame-level silence detection and energy-based speaker change detection
- Near-duplicate phrase suppression
- A canonical transcript model of finalized segments plus interim text
"""

from callscribe.stt.controller import RecognitionController
from callscribe.stt.diarization import SpeakerDiarizer
from callscribe.stt.duplicates import DuplicateSuppressor, FilterResult
from callscribe.stt.error_codes import (
    ErrorHandling,
    RecognitionErrorCode,
    classify_error,
    get_error_message,
)
from callscribe.stt.exceptions import (
    FatalRecognitionError,
    ModelNotFoundError,
    RecognitionError,
    RecognizerUnavailableError,
    RestartExhaustedError,
)
from callscribe.stt.models import (
    CallRecord,
    RecognitionAlternative,
    RecognitionResult,
    ResultEvent,
    SessionState,
    Speaker,
    TranscriptSegment,
    TranscriptSnapshot,
)
from callscribe.stt.protocol import AudioSink, Recognizer, RecognizerListener
from callscribe.stt.restart import RestartPolicy
from callscribe.stt.silence import SilenceDetector
from callscribe.stt.transcript import TranscriptAssembler

__all__ = [
    # Protocol
    "AudioSink",
    "Recognizer",
    "RecognizerListener",
    # Models
    "CallRecord",
    "RecognitionAlternative",
    "RecognitionResult",
    "ResultEvent",
    "SessionState",
    "Speaker",
    "TranscriptSegment",
    "TranscriptSnapshot",
    # Errors
    "ErrorHandling",
    "FatalRecognitionError",
    "ModelNotFoundError",
    "RecognitionError",
    "RecognitionErrorCode",
    "RecognizerUnavailableError",
    "RestartExhaustedError",
    "classify_error",
    "get_error_message",
    # Components
    "DuplicateSuppressor",
    "FilterResult",
    "RecognitionController",
    "RestartPolicy",
    "SilenceDetector",
    "SpeakerDiarizer",
    "TranscriptAssembler",
]
