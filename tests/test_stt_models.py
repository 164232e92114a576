"""Tests for recognition data models."""

import json
from datetime import datetime

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


class TestSessionState:
    """Tests for SessionState."""

    def test_active_states(self):
        assert SessionState.STARTING.is_active
        assert SessionState.LISTENING.is_active
        assert SessionState.RESTARTING.is_active

    def test_inactive_states(self):
        assert not SessionState.IDLE.is_active
        assert not SessionState.STOPPED.is_active
        assert not SessionState.FAILED.is_active


class TestRecognitionResult:
    """Tests for result models."""

    def test_top_alternative(self):
        result = RecognitionResult(
            alternatives=(RecognitionAlternative("hello", 0.9), RecognitionAlternative("yellow", 0.4)),
            is_final=True,
        )
        assert result.text == "hello"
        assert result.alternatives_considered == 2

    def test_no_alternatives(self):
        assert RecognitionResult(alternatives=(), is_final=False).text == ""

    def test_pending_from_index(self):
        first = RecognitionResult((RecognitionAlternative("a"),), True)
        second = RecognitionResult((RecognitionAlternative("b"),), False)
        event = ResultEvent(results=(first, second), result_index=1)
        assert event.pending() == (second,)


class TestCallRecord:
    """Tests for CallRecord."""

    def _record(self) -> CallRecord:
        first = Speaker("speaker_1", "Speaker 1")
        second = Speaker("speaker_2", "Speaker 2")
        return CallRecord(
            start_time=datetime(2024, 1, 1, 10, 0, 0),
            end_time=datetime(2024, 1, 1, 10, 1, 30),
            transcript="hi there how are you fine",
            segments=[
                TranscriptSegment("hi there", 1000, first),
                TranscriptSegment("how are you", 2000, first),
                TranscriptSegment("fine", 3000, second),
            ],
            source_kind="meeting",
        )

    def test_duration(self):
        assert self._record().duration_s == 90

    def test_to_json(self):
        data = json.loads(self._record().to_json())
        assert data["transcript"] == "hi there how are you fine"
        assert data["duration_s"] == 90
        assert data["source_kind"] == "meeting"
        assert data["segments"][2]["speaker"]["id"] == "speaker_2"
        assert data["start_time"] == "2024-01-01T10:00:00"

    def test_to_text_groups_by_speaker(self):
        assert self._record().to_text() == "[Speaker 1]\nhi there\nhow are you\n\n[Speaker 2]\nfine"

    def test_ids_are_unique(self):
        assert self._record().id != self._record().id


class TestTranscriptSnapshot:
    def test_defaults(self):
        snapshot = TranscriptSnapshot()
        assert snapshot.state is SessionState.IDLE
        assert snapshot.is_recording is False
        assert snapshot.error is None
        assert snapshot.segments == ()
