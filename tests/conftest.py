"""Shared fixtures: fake capture backend, fake recognizer, manual scheduler."""

from collections.abc import Callable

import numpy as np
import pytest

from callscribe.capture.models import CaptureConstraints, DisplayCaptureOptions
from callscribe.capture.stream import AudioStreamHandle
from callscribe.config import Settings, reset_settings
from callscribe.devices import AudioDevice
from callscribe.stt.models import RecognitionAlternative, RecognitionResult, ResultEvent


def tone(amplitude: float, size: int = 1600) -> np.ndarray:
    """Constant-level frame with the given RMS."""
    return np.full(size, amplitude, dtype=np.float32)


def final(text: str) -> RecognitionResult:
    return RecognitionResult(alternatives=(RecognitionAlternative(text, 0.9),), is_final=True)


def interim(text: str) -> RecognitionResult:
    return RecognitionResult(alternatives=(RecognitionAlternative(text, 0.5),), is_final=False)


class FakeTrack:
    """Audio track driven by the test."""

    def __init__(self, label: str = "Fake Mic", sample_rate: int = 16000) -> None:
        self.label = label
        self.sample_rate = sample_rate
        self.is_live = True
        self.started = False
        self._callback: Callable | None = None

    def set_frame_callback(self, callback: Callable | None) -> None:
        self._callback = callback

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.is_live = False

    def emit(self, frame: np.ndarray) -> None:
        if self._callback is not None:
            self._callback(frame, self.sample_rate)


class FakeBackend:
    """Capture backend with scriptable failures."""

    def __init__(
        self,
        devices: list[AudioDevice] | None = None,
        input_error: Exception | None = None,
        display_error: Exception | None = None,
        display_tracks: int = 1,
        display_supported: bool = True,
    ) -> None:
        self.devices = devices if devices is not None else [
            AudioDevice(id=0, name="Built-in Microphone", channels=1, sample_rate=48000.0, is_default=True),
        ]
        self.input_error = input_error
        self.display_error = display_error
        self.display_tracks = display_tracks
        self.display_supported = display_supported
        self.input_calls: list[CaptureConstraints] = []
        self.display_calls: list[DisplayCaptureOptions] = []
        self.handles: list[AudioStreamHandle] = []
        self.tracks: list[FakeTrack] = []

    @property
    def last_track(self) -> FakeTrack:
        return self.tracks[-1]

    def _handle(self, count: int, label: str) -> AudioStreamHandle:
        tracks = [FakeTrack(label=label) for _ in range(count)]
        self.tracks.extend(tracks)
        handle = AudioStreamHandle(tracks, label=label)
        self.handles.append(handle)
        return handle

    def open_input(self, constraints: CaptureConstraints) -> AudioStreamHandle:
        self.input_calls.append(constraints)
        if self.input_error is not None:
            raise self.input_error
        return self._handle(1, "input")

    def open_display(self, options: DisplayCaptureOptions) -> AudioStreamHandle:
        self.display_calls.append(options)
        if self.display_error is not None:
            raise self.display_error
        return self._handle(self.display_tracks, "display")

    def enumerate_devices(self) -> list[AudioDevice]:
        return list(self.devices)

    def supports_input_capture(self) -> bool:
        return bool(self.devices)

    def supports_display_capture(self) -> bool:
        return self.display_supported


class FakeRecognizer:
    """Recognizer whose events are fired by the test.

    ``stop()`` and ``abort()`` end the session synchronously, like a
    recognizer with nothing left to finalize.
    """

    def __init__(self, available: bool = True) -> None:
        self.continuous = False
        self.interim_results = False
        self.language = ""
        self.max_alternatives = 1
        self.available = available
        self.listener = None
        self.start_calls = 0
        self.stop_calls = 0
        self.abort_calls = 0
        self.start_error: Exception | None = None
        self.running = False

    def set_listener(self, listener) -> None:
        self.listener = listener

    def is_available(self) -> bool:
        return self.available

    def start(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        self.running = True

    def stop(self) -> None:
        self.stop_calls += 1
        self.end()

    def abort(self) -> None:
        self.abort_calls += 1
        if self.running:
            self.listener.on_error("aborted")
        self.end()

    # Test drivers

    def results(self, *results: RecognitionResult, index: int = 0) -> None:
        self.listener.on_result(ResultEvent(results=tuple(results), result_index=index))

    def error(self, code: str) -> None:
        self.listener.on_error(code)

    def end(self) -> None:
        if self.running:
            self.running = False
            self.listener.on_end()


class FakeAudioSinkRecognizer(FakeRecognizer):
    """Fake recognizer that also consumes captured frames."""

    def __init__(self) -> None:
        super().__init__()
        self.frames: list[tuple[np.ndarray, int]] = []

    def accept_audio(self, frame: np.ndarray, sample_rate: int) -> None:
        self.frames.append((frame, sample_rate))


class ManualAction:
    def __init__(self, delay_s: float, callback: Callable[[], None]) -> None:
        self.delay_s = delay_s
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler that only runs callbacks when the test says so."""

    def __init__(self) -> None:
        self.actions: list[ManualAction] = []

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ManualAction:
        action = ManualAction(delay_s, callback)
        self.actions.append(action)
        return action

    @property
    def pending(self) -> list[ManualAction]:
        return [a for a in self.actions if not a.cancelled]

    def run_pending(self) -> int:
        """Fire every pending action once; returns how many ran."""
        due = self.pending
        self.actions = []
        for action in due:
            action.callback()
        return len(due)


class FakeClock:
    """Monotonic seconds controlled by the test."""

    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
