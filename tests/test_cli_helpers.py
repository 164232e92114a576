"""Tests for CLI helper functions."""

import argparse
import json
import signal
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from callscribe.cli import (
    SignalHandler,
    TranscriptPrinter,
    _format_segment,
    _load_settings,
    cmd_list_devices,
    cmd_listen,
    create_parser,
    main,
)
from callscribe.devices import AudioDevice, MonitorSource
from callscribe.exceptions import UnsupportedEnvironmentError
from callscribe.stt.models import (
    CallRecord,
    SessionState,
    Speaker,
    TranscriptSegment,
    TranscriptSnapshot,
)


def segment(text: str, speaker: Speaker | None = None) -> TranscriptSegment:
    return TranscriptSegment(text=text, timestamp_ms=0, speaker=speaker)


class TestSignalHandler:
    """Tests for SignalHandler class."""

    def test_initial_state(self):
        handler = SignalHandler()
        assert handler.stop_requested is False
        assert handler.should_stop() is False

    def test_call_sets_stop_requested(self):
        handler = SignalHandler()
        handler(signal.SIGINT, None)
        assert handler.should_stop() is True

    @patch("callscribe.cli.signal.signal")
    def test_install(self, mock_signal):
        """Test install registers SIGINT and SIGTERM."""
        handler = SignalHandler()
        handler.install()

        signals_registered = {call[0][0] for call in mock_signal.call_args_list}
        assert signals_registered == {signal.SIGINT, signal.SIGTERM}

    def test_multiple_handlers_independent(self):
        handler1 = SignalHandler()
        handler2 = SignalHandler()

        handler1(signal.SIGINT, None)

        assert handler1.stop_requested is True
        assert handler2.stop_requested is False


class TestFormatSegment:
    def test_plain_segment(self):
        assert _format_segment(segment("hello")) == "hello"

    def test_segment_with_speaker(self):
        speaker = Speaker("speaker_2", "Speaker 2")
        assert _format_segment(segment("hi", speaker)) == "[cyan][Speaker 2][/cyan] hi"


class TestTranscriptPrinter:
    """Tests for the snapshot printer used by the listen command."""

    def test_prints_each_segment_once(self):
        out = MagicMock()
        printer = TranscriptPrinter(out=out)

        printer(TranscriptSnapshot(segments=(segment("one"),), state=SessionState.LISTENING))
        printer(TranscriptSnapshot(segments=(segment("one"), segment("two")), state=SessionState.LISTENING))

        printed = [call.args[0] for call in out.print.call_args_list]
        assert printed == ["one", "two"]

    def test_interim_changes_print_nothing(self):
        out = MagicMock()
        printer = TranscriptPrinter(out=out)

        printer(TranscriptSnapshot(state=SessionState.LISTENING, interim_text="hel"))
        printer(TranscriptSnapshot(state=SessionState.LISTENING, interim_text="hello"))

        out.print.assert_not_called()

    def test_restart_notice_printed_once(self):
        out = MagicMock()
        printer = TranscriptPrinter(out=out)

        printer(TranscriptSnapshot(state=SessionState.RESTARTING))
        printer(TranscriptSnapshot(state=SessionState.RESTARTING))

        assert out.print.call_count == 1
        assert "restarting" in out.print.call_args.args[0]

    def test_failure_prints_error(self):
        out = MagicMock()
        printer = TranscriptPrinter(out=out)

        printer(TranscriptSnapshot(state=SessionState.FAILED, error="Microphone access denied."))

        assert "Microphone access denied." in out.print.call_args.args[0]

    def test_inactivity_notice_on_transition(self):
        out = MagicMock()
        printer = TranscriptPrinter(out=out)

        printer(TranscriptSnapshot(state=SessionState.LISTENING, is_inactive=True))
        printer(TranscriptSnapshot(state=SessionState.LISTENING, is_inactive=True))
        printer(TranscriptSnapshot(state=SessionState.LISTENING, is_inactive=False))
        printer(TranscriptSnapshot(state=SessionState.LISTENING, is_inactive=True))

        assert out.print.call_count == 2


class TestParser:
    """Tests for argument parsing."""

    def test_listen_arguments(self):
        parser = create_parser()
        args = parser.parse_args(
            ["-v", "listen", "--source", "meeting", "-l", "de-DE", "--model-size", "base", "-o", "call.json"]
        )

        assert args.verbose is True
        assert args.command == "listen"
        assert args.source == "meeting"
        assert args.language == "de-DE"
        assert args.model_size == "base"
        assert args.output == "call.json"
        assert args.func is cmd_listen

    def test_invalid_source_rejected(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["listen", "--source", "radio"])

    def test_list_devices_command(self):
        args = create_parser().parse_args(["list-devices"])
        assert args.func is cmd_list_devices

    def test_main_without_command(self, capsys):
        assert main([]) == 0
        assert "callscribe" in capsys.readouterr().out


class TestLoadSettings:
    """Tests for settings loading with command-line overrides."""

    def test_overrides_applied(self, tmp_path):
        config = tmp_path / "settings.yml"
        config.write_text("recognition:\n  language: fr-FR\n  model_size: medium\n")
        args = argparse.Namespace(config=str(config), language="it-IT", model_size=None)

        settings = _load_settings(args)

        assert settings.recognition.language == "it-IT"
        assert settings.recognition.model_size == "medium"

    def test_no_overrides(self, tmp_path):
        config = tmp_path / "settings.yml"
        config.write_text("session:\n  default_source: voip\n")
        args = argparse.Namespace(config=str(config), language=None, model_size=None)

        settings = _load_settings(args)

        assert settings.session.default_source == "voip"
        assert settings.recognition.language == "en-US"


class TestListDevicesCommand:
    @patch("callscribe.cli.console")
    @patch("callscribe.cli.list_monitor_sources")
    @patch("callscribe.cli.list_input_devices")
    def test_lists_devices_and_monitors(self, mock_devices, mock_monitors, mock_console):
        mock_devices.return_value = [
            AudioDevice(id=0, name="Built-in Microphone", channels=1, sample_rate=48000.0, is_default=True),
            AudioDevice(id=3, name="USB Headset", channels=1, sample_rate=16000.0),
        ]
        mock_monitors.return_value = [
            MonitorSource(name="alsa_output.monitor", description="Speakers", sample_rate=48000, channels=2),
        ]

        assert cmd_list_devices(argparse.Namespace()) == 0

        printed = " ".join(str(call.args[0]) for call in mock_console.print.call_args_list if call.args)
        assert "headphones" in printed

    @patch("callscribe.cli.console")
    @patch("callscribe.cli.list_input_devices")
    def test_enumeration_error(self, mock_devices, mock_console):
        mock_devices.side_effect = UnsupportedEnvironmentError("no PortAudio")
        assert cmd_list_devices(argparse.Namespace()) == 1


class TestListenCommand:
    """Tests for the listen command with a mocked session."""

    def _args(self, tmp_path, output=None):
        return argparse.Namespace(
            config=str(tmp_path / "missing.yml"),
            source="microphone",
            language=None,
            model_size=None,
            output=output,
        )

    def _session(self, record, final_state=SessionState.STOPPED):
        session = MagicMock()
        session.start.return_value = TranscriptSnapshot(
            state=SessionState.LISTENING, is_recording=True, capture_path="direct"
        )
        session.is_recording = False
        session.stop.return_value = record
        session.snapshot.return_value = TranscriptSnapshot(state=final_state, error="boom")
        return session

    @patch("callscribe.cli.console")
    @patch("callscribe.cli.signal.signal")
    @patch("callscribe.session.create_session")
    def test_writes_call_record(self, mock_create, _mock_signal, _mock_console, tmp_path):
        record = CallRecord(
            start_time=datetime(2024, 5, 1, 9, 0, 0),
            end_time=datetime(2024, 5, 1, 9, 1, 0),
            transcript="hello",
            segments=[segment("hello")],
            source_kind="microphone",
        )
        session = self._session(record)
        mock_create.return_value = session
        output = tmp_path / "call.json"

        assert cmd_listen(self._args(tmp_path, output=str(output))) == 0

        session.start.assert_called_once_with("microphone")
        session.close.assert_called_once()
        data = json.loads(output.read_text())
        assert data["transcript"] == "hello"
        assert data["duration_s"] == 60

    @patch("callscribe.cli.console")
    @patch("callscribe.cli.signal.signal")
    @patch("callscribe.session.create_session")
    def test_writes_plain_text_transcript(self, mock_create, _mock_signal, _mock_console, tmp_path):
        first = Speaker("speaker_1", "Speaker 1")
        second = Speaker("speaker_2", "Speaker 2")
        record = CallRecord(
            start_time=datetime(2024, 5, 1, 9, 0, 0),
            end_time=datetime(2024, 5, 1, 9, 1, 0),
            transcript="hi hello",
            segments=[segment("hi", first), segment("hello", second)],
        )
        mock_create.return_value = self._session(record)
        output = tmp_path / "call.txt"

        assert cmd_listen(self._args(tmp_path, output=str(output))) == 0

        assert output.read_text() == "[Speaker 1]\nhi\n\n[Speaker 2]\nhello"

    @patch("callscribe.cli.console")
    @patch("callscribe.cli.signal.signal")
    @patch("callscribe.session.create_session")
    def test_failed_start_returns_error(self, mock_create, _mock_signal, _mock_console, tmp_path):
        session = MagicMock()
        session.start.return_value = TranscriptSnapshot(state=SessionState.FAILED, error="denied")
        mock_create.return_value = session

        assert cmd_listen(self._args(tmp_path)) == 1
        session.stop.assert_not_called()
        session.close.assert_called_once()

    @patch("callscribe.cli.console")
    @patch("callscribe.cli.signal.signal")
    @patch("callscribe.session.create_session")
    def test_failure_during_recording(self, mock_create, _mock_signal, _mock_console, tmp_path):
        mock_create.return_value = self._session(None, final_state=SessionState.FAILED)
        assert cmd_listen(self._args(tmp_path)) == 1
