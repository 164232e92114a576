"""Base class for continuous recognizers with listener plumbing."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence

from callscribe.stt.models import RecognitionResult, ResultEvent
from callscribe.stt.protocol import RecognizerListener

logger = logging.getLogger(__name__)


class BaseRecognizer(ABC):
    """Abstract base class for recognizers.

    Holds the configuration flags read on every ``start()`` and delivers
    events to the registered listener. Listener failures are logged and
    never propagate into the recognizer's own threads.
    """

    def __init__(
        self,
        language: str = "en-US",
        continuous: bool = True,
        interim_results: bool = True,
        max_alternatives: int = 1,
    ) -> None:
        self.language = language
        self.continuous = continuous
        self.interim_results = interim_results
        self.max_alternatives = max_alternatives
        self._listener: RecognizerListener | None = None
        self._listener_lock = threading.Lock()

    def set_listener(self, listener: RecognizerListener | None) -> None:
        with self._listener_lock:
            self._listener = listener

    def _current_listener(self) -> RecognizerListener | None:
        with self._listener_lock:
            return self._listener

    def _emit_result(self, results: Sequence[RecognitionResult], result_index: int = 0) -> None:
        listener = self._current_listener()
        if listener is None:
            return
        try:
            listener.on_result(ResultEvent(results=tuple(results), result_index=result_index))
        except Exception as e:
            logger.warning(f"Result listener failed: {e}")

    def _emit_error(self, code: str, message: str = "") -> None:
        listener = self._current_listener()
        if listener is None:
            return
        try:
            listener.on_error(code, message)
        except Exception as e:
            logger.warning(f"Error listener failed: {e}")

    def _emit_end(self) -> None:
        listener = self._current_listener()
        if listener is None:
            return
        try:
            listener.on_end()
        except Exception as e:
            logger.warning(f"End listener failed: {e}")

    @abstractmethod
    def start(self) -> None:
        """Begin a recognition session.

        Raises:
            RecognitionError: If a session cannot be started.
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        """Finalize pending audio, then end the session."""
        ...

    @abstractmethod
    def abort(self) -> None:
        """Discard pending audio and end the session."""
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if engine dependencies are installed and functional.

        Returns:
            True if the recognizer can be used, False otherwise.
        """
        ...
