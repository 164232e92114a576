"""Recognition controller: the live session state machine.

States: IDLE -> STARTING -> LISTENING <-> RESTARTING -> STOPPED, with FAILED
reachable from any active state. All session state is owned by a single
worker thread that drains an event queue; recognizer callbacks, captured
audio frames, restart timers and public commands only enqueue events.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from callscribe.capture.manager import AudioSourceManager
from callscribe.capture.models import (
    AcquisitionResult,
    AudioSourceKind,
    AudioSourceRequest,
    CaptureOptions,
    CapturePath,
)
from callscribe.config import Settings, get_settings
from callscribe.exceptions import AcquisitionError, SessionError
from callscribe.stt.diarization import SpeakerDiarizer
from callscribe.stt.duplicates import DuplicateSuppressor
from callscribe.stt.error_codes import (
    RESTARTS_EXHAUSTED_MESSAGE,
    START_FAILED_MESSAGE,
    UNSUPPORTED_MESSAGE,
    ErrorHandling,
    classify_error,
    get_error_message,
)
from callscribe.stt.models import ResultEvent, SessionState, Speaker, TranscriptSnapshot
from callscribe.stt.protocol import AudioSink, Recognizer
from callscribe.stt.restart import RestartPolicy
from callscribe.stt.scheduler import ScheduledAction, Scheduler, TimerScheduler
from callscribe.stt.silence import SilenceDetector
from callscribe.stt.transcript import TranscriptAssembler

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[TranscriptSnapshot], None]


@dataclass(frozen=True)
class _StartCommand:
    kind: AudioSourceKind | None
    capture_options: CaptureOptions | None = None
    preserve_transcript: bool = False


@dataclass(frozen=True)
class _StopCommand:
    pass


@dataclass(frozen=True)
class _SwitchSourceCommand:
    kind: AudioSourceKind


@dataclass(frozen=True)
class _ResetTranscriptCommand:
    pass


@dataclass(frozen=True)
class _ResultReceived:
    event: ResultEvent


@dataclass(frozen=True)
class _ErrorReceived:
    code: str
    message: str


@dataclass(frozen=True)
class _EndReceived:
    pass


@dataclass(frozen=True)
class _FrameReceived:
    frame: NDArray[np.float32]
    sample_rate: int
    timestamp: float


@dataclass(frozen=True)
class _RestartDue:
    token: int


class RecognitionController:
    """Drives a continuous recognizer through a resilient restart cycle.

    Unexpected recognizer ends and transient errors flush the interim text
    and schedule a restart after an exponentially growing backoff; fatal
    errors and exhausted retries stop the session with a user-readable
    error. Captured frames feed silence detection and, on loopback captures,
    the energy-based diarizer.
    """

    def __init__(
        self,
        recognizer: Recognizer | None,
        source_manager: AudioSourceManager,
        settings: Settings | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
        assembler: TranscriptAssembler | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            recognizer: Continuous recognition engine (None if unavailable).
            source_manager: Resolves source kinds into live audio streams.
            settings: Application settings. Uses the global settings if None.
            scheduler: Runs delayed restarts. Uses timer threads if None.
            clock: Monotonic seconds source for activity and frame timing.
            assembler: Transcript store (a fresh one if None).
        """
        self._settings = settings or get_settings()
        self._recognizer = recognizer
        self._sources = source_manager
        self._scheduler = scheduler or TimerScheduler()
        self._clock = clock

        self._events: queue.Queue[Any] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._thread_lock = threading.Lock()
        self._closed = False

        self._subscribers: list[SnapshotCallback] = []
        self._snapshot = TranscriptSnapshot()
        self._recognizer_ended = threading.Event()
        self._recognizer_ended.set()

        # Session state, touched only by the worker thread
        self._state = SessionState.IDLE
        self._kind = AudioSourceKind(self._settings.session.default_source)
        self._acquisition: AcquisitionResult | None = None
        self._audio_sink: AudioSink | None = None
        self._intentional_stop = False
        self._running_sessions = 0
        self._error: str | None = None
        self._restart_policy = RestartPolicy.from_config(self._settings.restart)
        self._pending_restart: ScheduledAction | None = None
        self._restart_token = 0
        self._last_activity = self._clock()
        self._is_inactive = False
        self._diarization_active = False

        self._assembler = assembler or TranscriptAssembler()
        self._suppressor = self._new_suppressor()
        self._silence = self._new_silence_detector()
        self._diarizer = self._new_diarizer()

        if recognizer is not None:
            recognizer.set_listener(self)

    # Collaborator surface

    @property
    def state(self) -> SessionState:
        return self._snapshot.state

    @property
    def restart_policy(self) -> RestartPolicy:
        return self._restart_policy

    def snapshot(self) -> TranscriptSnapshot:
        """Latest published view of the session."""
        return self._snapshot

    def subscribe(self, callback: SnapshotCallback) -> None:
        """Call ``callback`` from the worker thread on every published change."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: SnapshotCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def start(self, kind: AudioSourceKind | str | None = None, capture_options: CaptureOptions | None = None) -> None:
        """Request a new session, optionally pinned to a source kind."""
        source = AudioSourceKind(kind) if kind is not None else None
        self._post(_StartCommand(source, capture_options), strict=True)

    def stop(self) -> None:
        """Request the session to stop."""
        self._post(_StopCommand(), strict=True)

    def switch_source(self, kind: AudioSourceKind | str) -> None:
        """Change the source kind; restarts capture when recording."""
        self._post(_SwitchSourceCommand(AudioSourceKind(kind)), strict=True)

    def reset_transcript(self) -> None:
        """Clear the transcript (ignored while recording)."""
        self._post(_ResetTranscriptCommand(), strict=True)

    def wait_until_idle(self) -> None:
        """Block until every queued event has been processed."""
        self._events.join()

    def wait_for_recognizer_end(self, timeout: float | None = None) -> bool:
        """Block until the recognizer has reported the end of its session."""
        return self._recognizer_ended.wait(timeout)

    def close(self) -> None:
        """Stop the worker thread. Pending events are processed first."""
        with self._thread_lock:
            if self._closed:
                return
            self._closed = True
            thread = self._thread
        if thread is not None:
            self._events.put(None)
            thread.join(timeout=5.0)
        self._cancel_pending_restart()
        self._sources.release()

    def __enter__(self) -> RecognitionController:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._closed and self._snapshot.is_recording:
            self.stop()
            self.wait_until_idle()
        self.close()

    # RecognizerListener (called from recognizer threads)

    def on_result(self, event: ResultEvent) -> None:
        self._post(_ResultReceived(event))

    def on_error(self, code: str, message: str = "") -> None:
        self._post(_ErrorReceived(str(code), message))

    def on_end(self) -> None:
        self._post(_EndReceived())

    # Event plumbing

    def _post(self, event: object, strict: bool = False) -> None:
        with self._thread_lock:
            if self._closed:
                if strict:
                    raise SessionError("Recognition controller is closed")
                return
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._process_loop,
                    name="callscribe-controller",
                    daemon=True,
                )
                self._thread.start()
        self._events.put(event)

    def _on_frame(self, frame: NDArray[np.float32], sample_rate: int) -> None:
        """Capture callback: forward to the recognizer and enqueue analysis."""
        sink = self._audio_sink
        if sink is not None:
            sink.accept_audio(frame, sample_rate)
        self._post(_FrameReceived(frame, sample_rate, self._clock()))

    def _process_loop(self) -> None:
        """Main processing loop running in the worker thread."""
        while True:
            event = self._events.get()
            try:
                if event is None:
                    return
                self._dispatch(event)
            except Exception as e:
                logger.error(f"Error handling {type(event).__name__}: {e}", exc_info=True)
            finally:
                self._events.task_done()

    def _dispatch(self, event: object) -> None:
        if isinstance(event, _FrameReceived):
            if self._handle_frame(event):
                self._publish()
            return

        if isinstance(event, _ResultReceived):
            self._handle_result(event.event)
        elif isinstance(event, _ErrorReceived):
            self._handle_error(event.code, event.message)
        elif isinstance(event, _EndReceived):
            self._handle_end()
        elif isinstance(event, _RestartDue):
            self._handle_restart_due(event.token)
        elif isinstance(event, _StartCommand):
            self._handle_start(event)
        elif isinstance(event, _StopCommand):
            self._handle_stop()
        elif isinstance(event, _SwitchSourceCommand):
            self._handle_switch_source(event.kind)
        elif isinstance(event, _ResetTranscriptCommand):
            self._handle_reset_transcript()
        else:
            logger.warning(f"Ignoring unknown event {event!r}")
            return
        self._publish()

    def _publish(self) -> None:
        acquisition = self._acquisition
        speakers: tuple[Speaker, ...] = ()
        if self._diarization_active:
            speakers = tuple(self._diarizer.speakers)

        snapshot = TranscriptSnapshot(
            transcript=self._assembler.full_transcript(),
            segments=tuple(self._assembler.segments()),
            interim_text=self._assembler.interim,
            speakers=speakers,
            is_recording=self._state.is_active,
            error=self._error,
            state=self._state,
            source_kind=self._kind.value,
            capture_path=acquisition.path.value if acquisition else None,
            is_silent=self._silence.is_silent,
            is_inactive=self._is_inactive,
        )
        self._snapshot = snapshot

        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.warning(f"Snapshot subscriber failed: {e}")

    # Per-session helpers

    def _new_suppressor(self) -> DuplicateSuppressor:
        config = self._settings.duplicates
        return DuplicateSuppressor(history_size=config.history_size, threshold=config.similarity_threshold)

    def _new_silence_detector(self) -> SilenceDetector:
        config = self._settings.silence
        return SilenceDetector(
            threshold_db=config.threshold_db,
            min_duration_ms=config.min_duration_ms,
            clock=self._clock,
        )

    def _new_diarizer(self) -> SpeakerDiarizer:
        config = self._settings.diarization
        return SpeakerDiarizer(
            energy_floor=config.energy_floor,
            change_threshold=config.change_threshold,
            debounce_frames=config.debounce_frames,
            max_speakers=config.max_speakers,
        )

    def _set_state(self, state: SessionState) -> None:
        if state is not self._state:
            logger.info(f"Recognition state: {self._state.value} -> {state.value}")
            self._state = state

    def _reset_session(self, preserve_transcript: bool) -> None:
        if not preserve_transcript:
            self._assembler.reset()
            self._suppressor = self._new_suppressor()
        self._silence = self._new_silence_detector()
        self._diarizer = self._new_diarizer()
        self._restart_policy.reset()
        self._error = None
        self._is_inactive = False
        self._diarization_active = False
        self._last_activity = self._clock()

    def _filter_duplicates(self, text: str) -> str:
        return self._suppressor.filter(text).cleaned_text

    def _current_speaker(self) -> Speaker | None:
        if not self._diarization_active:
            return None
        return self._diarizer.current_speaker

    def _flush_interim(self) -> None:
        self._assembler.flush_interim_as_final(
            speaker=self._current_speaker(),
            text_filter=self._filter_duplicates,
        )

    def _configure_recognizer(self) -> None:
        recognizer = self._recognizer
        if recognizer is None:
            return
        config = self._settings.recognition
        recognizer.continuous = config.continuous
        recognizer.interim_results = config.interim_results
        recognizer.language = config.language
        recognizer.max_alternatives = config.max_alternatives

    def _configure_analysis(self, acquisition: AcquisitionResult) -> None:
        self._diarization_active = (
            self._settings.diarization.enabled and acquisition.supports_diarization
        )
        if acquisition.path is CapturePath.LOOPBACK:
            self._silence.configure(threshold_db=self._settings.silence.loopback_threshold_db)
        if acquisition.fell_back:
            logger.warning(
                f"{acquisition.kind.value} fell back to direct input "
                f"({acquisition.fallback_reason}); diarization disabled"
            )

    def _start_recognizer(self, recognizer: Recognizer) -> None:
        self._configure_recognizer()
        self._intentional_stop = False
        recognizer.start()
        self._running_sessions += 1
        self._recognizer_ended.clear()

    def _release_audio(self) -> None:
        self._audio_sink = None
        self._sources.release()

    def _cancel_pending_restart(self) -> None:
        self._restart_token += 1
        pending = self._pending_restart
        self._pending_restart = None
        if pending is not None:
            pending.cancel()

    def _shutdown_recognizer(self, abort: bool) -> None:
        recognizer = self._recognizer
        if recognizer is None or self._running_sessions == 0:
            return
        self._intentional_stop = True
        try:
            if abort:
                recognizer.abort()
            else:
                recognizer.stop()
        except Exception as e:
            logger.warning(f"Recognizer did not stop cleanly: {e}")

    def _fail(self, message: str) -> None:
        """Terminal failure: surface ``message`` and stop recording."""
        logger.error(f"Recognition failed: {message}")
        self._cancel_pending_restart()
        self._flush_interim()
        self._shutdown_recognizer(abort=True)
        self._release_audio()
        self._error = message
        self._set_state(SessionState.FAILED)

    def _begin_restart(self, reason: str) -> None:
        self._flush_interim()

        if self._restart_policy.exhausted:
            logger.error(
                f"Giving up after {self._restart_policy.attempt_count} restart attempts ({reason})"
            )
            self._fail(RESTARTS_EXHAUSTED_MESSAGE)
            return

        delay_ms = self._restart_policy.current_backoff_ms
        logger.warning(f"{reason}; restarting recognizer in {delay_ms:.0f} ms")
        self._set_state(SessionState.RESTARTING)

        self._cancel_pending_restart()
        token = self._restart_token
        self._pending_restart = self._scheduler.call_later(
            delay_ms / 1000.0,
            lambda: self._post(_RestartDue(token)),
        )

    # Event handlers

    def _handle_start(self, command: _StartCommand) -> None:
        if self._state.is_active:
            logger.warning("Start requested while a session is active; ignoring")
            return

        self._cancel_pending_restart()
        if command.kind is not None:
            self._kind = command.kind
        self._reset_session(command.preserve_transcript)
        self._set_state(SessionState.STARTING)

        recognizer = self._recognizer
        if recognizer is None or not recognizer.is_available():
            self._fail(UNSUPPORTED_MESSAGE)
            return

        request = AudioSourceRequest(kind=self._kind, capture_options=command.capture_options or CaptureOptions())
        try:
            acquisition = self._sources.acquire(request)
            acquisition.handle.on_frame(self._on_frame)
            acquisition.handle.start()
        except AcquisitionError as e:
            logger.error(f"Audio acquisition failed: {e}")
            self._fail(e.user_message)
            return

        self._acquisition = acquisition
        self._configure_analysis(acquisition)
        self._audio_sink = recognizer if isinstance(recognizer, AudioSink) else None

        try:
            self._start_recognizer(recognizer)
        except Exception as e:
            logger.error(f"Recognizer failed to start: {e}")
            self._fail(START_FAILED_MESSAGE)
            return

        self._last_activity = self._clock()
        self._set_state(SessionState.LISTENING)

    def _handle_stop(self, flush_now: bool = False) -> None:
        if not self._state.is_active:
            self._release_audio()
            return

        self._cancel_pending_restart()
        self._shutdown_recognizer(abort=False)
        # A recognizer still finalizing gets to replace the interim; it is
        # flushed when the recognizer ends
        if flush_now or self._running_sessions == 0:
            self._flush_interim()
        self._release_audio()
        self._set_state(SessionState.STOPPED)

    def _handle_switch_source(self, kind: AudioSourceKind) -> None:
        if not self._state.is_active:
            self._kind = kind
            return

        logger.info(f"Switching source {self._kind.value} -> {kind.value}")
        self._handle_stop(flush_now=True)
        self._handle_start(_StartCommand(kind, preserve_transcript=True))

    def _handle_reset_transcript(self) -> None:
        if self._state.is_active:
            logger.warning("Cannot reset the transcript while recording")
            return
        self._assembler.reset()
        self._suppressor = self._new_suppressor()
        self._error = None

    def _accepting_results(self) -> bool:
        return self._state.is_active or self._running_sessions > 0

    def _handle_result(self, event: ResultEvent) -> None:
        if not self._accepting_results():
            return

        final_parts: list[str] = []
        interim_parts: list[str] = []
        for result in event.pending():
            text = result.text.strip()
            if not text:
                continue
            if result.is_final:
                final_parts.append(text)
            else:
                interim_parts.append(text)

        if final_parts or interim_parts:
            # A healthy stream of results means the recognizer recovered
            self._restart_policy.reset()
            self._last_activity = self._clock()
            self._is_inactive = False

        if final_parts:
            cleaned = self._filter_duplicates(" ".join(final_parts))
            if cleaned:
                self._assembler.append_final(cleaned, self._current_speaker())

        self._assembler.set_interim(" ".join(interim_parts))

        if self._state is SessionState.STARTING:
            self._set_state(SessionState.LISTENING)

    def _handle_error(self, code: str, message: str) -> None:
        if not self._state.is_active:
            return

        handling = classify_error(code, self._intentional_stop)
        if handling is ErrorHandling.IGNORE:
            logger.debug(f"Ignoring recognizer error {code!r} {message}")
            return

        if handling is ErrorHandling.FAIL:
            self._fail(get_error_message(code))
            return

        if self._state is SessionState.RESTARTING:
            return
        self._begin_restart(f"Recognizer error {code!r}")

    def _handle_end(self) -> None:
        self._running_sessions = max(0, self._running_sessions - 1)
        if self._running_sessions > 0:
            # End of an earlier run that was superseded
            logger.debug("Ignoring end of a superseded recognizer session")
            return
        self._recognizer_ended.set()

        if not self._state.is_active:
            # Results delivered after stop are complete now
            self._flush_interim()
            return
        if self._intentional_stop or self._state not in (SessionState.STARTING, SessionState.LISTENING):
            return
        self._begin_restart("Recognizer ended unexpectedly")

    def _handle_restart_due(self, token: int) -> None:
        if token != self._restart_token or self._state is not SessionState.RESTARTING:
            logger.debug("Ignoring stale restart")
            return

        recognizer = self._recognizer
        if recognizer is None:
            self._fail(UNSUPPORTED_MESSAGE)
            return

        self._pending_restart = None
        self._restart_policy.record_attempt()
        logger.info(
            f"Restarting recognizer (attempt {self._restart_policy.attempt_count}"
            f"/{self._restart_policy.max_attempts})"
        )

        try:
            self._start_recognizer(recognizer)
        except Exception as e:
            self._begin_restart(f"Restart failed: {e}")
            return

        self._last_activity = self._clock()
        self._set_state(SessionState.LISTENING)

    def _handle_frame(self, event: _FrameReceived) -> bool:
        """Run frame analysis; returns True when the published view changed."""
        if not self._state.is_active:
            return False

        was_silent = self._silence.is_silent
        changed = self._silence.observe(event.frame, event.timestamp) != was_silent

        if self._diarization_active:
            known = len(self._diarizer.speakers)
            observation = self._diarizer.observe(event.frame)
            changed = changed or observation.changed or len(self._diarizer.speakers) != known

        if (
            self._state is SessionState.LISTENING
            and not self._is_inactive
            and event.timestamp - self._last_activity > self._settings.session.inactivity_timeout_s
        ):
            logger.info(
                f"No recognition activity for {event.timestamp - self._last_activity:.0f}s"
            )
            self._is_inactive = True
            changed = True

        return changed
