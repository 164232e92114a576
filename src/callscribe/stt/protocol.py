"""Protocol definitions for continuous recognition engines."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from .models import ResultEvent


@runtime_checkable
class RecognizerListener(Protocol):
    """Receiver of recognizer lifecycle and result events.

    Recognizers may invoke these from any thread.
    """

    def on_result(self, event: ResultEvent) -> None:
        """Results changed from ``event.result_index`` onwards."""
        ...

    def on_error(self, code: str, message: str = "") -> None:
        """The recognizer reported a coded error."""
        ...

    def on_end(self) -> None:
        """The recognition session ended."""
        ...


@runtime_checkable
class Recognizer(Protocol):
    """Generic interface for continuous speech recognizers.

    Configuration flags are read on every ``start()``. After ``stop()``
    the recognizer finalizes pending audio and ends; ``abort()`` discards
    it. Each session ends with exactly one ``on_end`` call.
    """

    continuous: bool
    interim_results: bool
    language: str
    max_alternatives: int

    def set_listener(self, listener: RecognizerListener | None) -> None:
        """Register the receiver of events."""
        ...

    def start(self) -> None:
        """Begin a recognition session."""
        ...

    def stop(self) -> None:
        """End the session after finalizing pending audio."""
        ...

    def abort(self) -> None:
        """End the session immediately."""
        ...

    def is_available(self) -> bool:
        """Check if engine dependencies are installed and functional."""
        ...


@runtime_checkable
class AudioSink(Protocol):
    """Recognizers that consume captured audio rather than their own input."""

    def accept_audio(self, frame: NDArray[np.float32], sample_rate: int) -> None:
        """Queue a captured frame. Must not block."""
        ...
