"""High-level live transcription session."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from callscribe.capture.manager import AudioSourceManager
from callscribe.capture.models import AudioSourceKind, CaptureCapabilities, CaptureOptions
from callscribe.capture.protocol import AudioCaptureBackend
from callscribe.config import Settings, get_settings
from callscribe.stt.controller import RecognitionController, SnapshotCallback
from callscribe.stt.models import CallRecord, SessionState, TranscriptSnapshot
from callscribe.stt.protocol import Recognizer
from callscribe.stt.scheduler import Scheduler

logger = logging.getLogger(__name__)

CallEndedCallback = Callable[[CallRecord], None]

# How long stop() waits for the recognizer to deliver its last results
STOP_TIMEOUT_S = 10.0


class LiveTranscriptionSession:
    """Synchronous facade over the recognition controller.

    Commands block until the controller has processed them, so the snapshot
    read right after a call reflects its outcome. Each recording that ends
    with a transcript produces a CallRecord, handed to ``on_call_ended``:
    on ``stop()``, or as soon as the session fails on its own so the call
    can be saved before anyone notices.
    """

    def __init__(
        self,
        controller: RecognitionController,
        source_manager: AudioSourceManager,
        on_call_ended: CallEndedCallback | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._controller = controller
        self._sources = source_manager
        self._on_call_ended = on_call_ended
        self._clock = clock
        self._started_at: datetime | None = None
        self._failed_record: CallRecord | None = None
        self._call_lock = threading.Lock()
        controller.subscribe(self._on_snapshot)

    @property
    def controller(self) -> RecognitionController:
        return self._controller

    @property
    def is_recording(self) -> bool:
        return self._controller.snapshot().is_recording

    def capabilities(self) -> CaptureCapabilities:
        """Probe which capture paths this environment offers."""
        return self._sources.probe_capabilities()

    def snapshot(self) -> TranscriptSnapshot:
        return self._controller.snapshot()

    def subscribe(self, callback: SnapshotCallback) -> None:
        """Receive every published snapshot (called from the worker thread)."""
        self._controller.subscribe(callback)

    def start(
        self,
        kind: AudioSourceKind | str | None = None,
        capture_options: CaptureOptions | None = None,
    ) -> TranscriptSnapshot:
        """Start recording from ``kind`` (the configured default if None).

        Returns:
            Snapshot after the start was processed. On failure its state is
            FAILED and ``error`` carries the user-readable reason.
        """
        self._controller.start(kind, capture_options)
        self._controller.wait_until_idle()
        snapshot = self._controller.snapshot()
        with self._call_lock:
            if snapshot.is_recording and self._started_at is None:
                self._started_at = self._clock()
                self._failed_record = None
        return snapshot

    def stop(self, timeout: float = STOP_TIMEOUT_S) -> CallRecord | None:
        """Stop recording and wait for the recognizer's final results.

        Returns:
            The finished call (also when it already ended by failing), or
            None when nothing was recorded.
        """
        self._controller.stop()
        self._controller.wait_until_idle()
        if not self._controller.wait_for_recognizer_end(timeout):
            logger.warning(f"Recognizer did not end within {timeout:.0f}s")
        self._controller.wait_until_idle()

        record = self._finish_call(self._controller.snapshot())
        if record is None:
            with self._call_lock:
                record, self._failed_record = self._failed_record, None
        return record

    def switch_source(self, kind: AudioSourceKind | str) -> TranscriptSnapshot:
        """Move the recording to another source, keeping the transcript."""
        self._controller.switch_source(kind)
        self._controller.wait_until_idle()
        return self._controller.snapshot()

    def reset_transcript(self) -> None:
        self._controller.reset_transcript()
        self._controller.wait_until_idle()

    def _on_snapshot(self, snapshot: TranscriptSnapshot) -> None:
        if snapshot.state is not SessionState.FAILED or self._started_at is None:
            return
        record = self._finish_call(snapshot)
        if record is not None:
            with self._call_lock:
                self._failed_record = record

    def _finish_call(self, snapshot: TranscriptSnapshot) -> CallRecord | None:
        with self._call_lock:
            started_at = self._started_at
            self._started_at = None
        if started_at is None or not snapshot.segments:
            return None

        record = CallRecord(
            start_time=started_at,
            end_time=self._clock(),
            transcript=" ".join(s.text for s in snapshot.segments),
            segments=list(snapshot.segments),
            source_kind=snapshot.source_kind,
        )
        logger.info(f"Call {record.id} ended after {record.duration_s}s")

        if self._on_call_ended is not None:
            try:
                self._on_call_ended(record)
            except Exception as e:
                logger.error(f"Call ended hook failed: {e}")
        return record

    def close(self) -> None:
        """Stop any recording and shut the controller down."""
        if self._controller.snapshot().is_recording:
            self.stop()
        self._controller.close()

    def __enter__(self) -> LiveTranscriptionSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def create_session(
    settings: Settings | None = None,
    backend: AudioCaptureBackend | None = None,
    recognizer: Recognizer | None = None,
    scheduler: Scheduler | None = None,
    on_call_ended: CallEndedCallback | None = None,
) -> LiveTranscriptionSession:
    """Wire a session from settings.

    Args:
        settings: Application settings. Uses the global settings if None.
        backend: Capture backend. Defaults to the sounddevice backend.
        recognizer: Recognition engine. Defaults to faster-whisper.
        scheduler: Restart scheduler. Defaults to timer threads.
        on_call_ended: Called with each finished CallRecord.

    Returns:
        A ready, idle session.
    """
    settings = settings or get_settings()

    if backend is None:
        from callscribe.capture.sounddevice_backend import SoundDeviceBackend

        backend = SoundDeviceBackend()

    if recognizer is None:
        from callscribe.stt.providers.faster_whisper import FasterWhisperRecognizer

        recognizer = FasterWhisperRecognizer.from_config(settings.recognition)

    manager = AudioSourceManager(backend, settings.capture)
    controller = RecognitionController(
        recognizer=recognizer,
        source_manager=manager,
        settings=settings,
        scheduler=scheduler,
    )
    return LiveTranscriptionSession(controller, manager, on_call_ended=on_call_ended)
