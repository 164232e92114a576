"""Command-line interface for Callscribe."""

import argparse
import logging
import signal
import sys
import threading
import time
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from callscribe.config import SOURCE_KINDS, Settings, get_settings
from callscribe.devices import categorize_devices, list_input_devices, list_monitor_sources, suggest_source_kind
from callscribe.exceptions import CallscribeError
from callscribe.stt.models import SessionState, TranscriptSegment, TranscriptSnapshot

console = Console()


class SignalHandler:
    """Reusable signal handler for graceful stop."""

    def __init__(self) -> None:
        self.stop_requested = False

    def __call__(self, signum: int, frame: object) -> None:
        self.stop_requested = True

    def install(self) -> None:
        """Install signal handlers for SIGINT and SIGTERM."""
        signal.signal(signal.SIGINT, self)
        signal.signal(signal.SIGTERM, self)

    def should_stop(self) -> bool:
        """Check if stop was requested."""
        return self.stop_requested


def _configure_logging(verbose: bool) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )


def _load_settings(args: argparse.Namespace) -> Settings:
    """Load settings and apply command-line overrides."""
    settings = get_settings(Path(args.config) if args.config else None)

    overrides: dict[str, object] = {}
    if getattr(args, "language", None):
        overrides["language"] = args.language
    if getattr(args, "model_size", None):
        overrides["model_size"] = args.model_size
    if not overrides:
        return settings

    return settings.model_copy(
        update={"recognition": settings.recognition.model_copy(update=overrides)}
    )


def _format_segment(segment: TranscriptSegment) -> str:
    """Render a finalized segment with its speaker prefix."""
    if segment.speaker is None:
        return segment.text
    return f"[cyan][{segment.speaker.display_label}][/cyan] {segment.text}"


class TranscriptPrinter:
    """Prints new segments and status changes from published snapshots."""

    def __init__(self, out: Console = console) -> None:
        self._out = out
        self._printed = 0
        self._state: SessionState | None = None
        self._inactive = False
        self._lock = threading.Lock()

    def __call__(self, snapshot: TranscriptSnapshot) -> None:
        with self._lock:
            for segment in snapshot.segments[self._printed :]:
                self._out.print(_format_segment(segment))
            self._printed = len(snapshot.segments)

            if snapshot.state is not self._state:
                self._state = snapshot.state
                if snapshot.state is SessionState.RESTARTING:
                    self._out.print("[yellow]Recognizer interrupted, restarting...[/yellow]")
                elif snapshot.state is SessionState.FAILED and snapshot.error:
                    self._out.print(f"[red]Error:[/red] {snapshot.error}")

            if snapshot.is_inactive and not self._inactive:
                self._out.print("[dim]No speech recognized for a while...[/dim]")
            self._inactive = snapshot.is_inactive


def cmd_list_devices(args: argparse.Namespace) -> int:
    """List audio input devices and loopback sources."""
    try:
        devices = list_input_devices()
    except CallscribeError as e:
        console.print(f"[red]Error listing devices:[/red] {e}")
        return 1

    if not devices:
        console.print("[yellow]No audio input devices found.[/yellow]")
    else:
        headset_ids = {d.id for d in categorize_devices(devices).headphones}

        table = Table(title="Audio Input Devices")
        table.add_column("ID", style="cyan", justify="right")
        table.add_column("Name", style="white")
        table.add_column("Channels", justify="center")
        table.add_column("Sample Rate", justify="right")
        table.add_column("Category", justify="center")
        table.add_column("", justify="center")

        for dev in devices:
            table.add_row(
                str(dev.id),
                dev.name,
                str(dev.channels),
                f"{int(dev.sample_rate)} Hz",
                "headset" if dev.id in headset_ids else "microphone",
                "★" if dev.is_default else "",
            )

        console.print(table)
        console.print("\n[dim]★ = system default[/dim]")
        console.print(f"\n[green]Suggested source:[/green] {suggest_source_kind(devices)}")

    monitors = list_monitor_sources()
    if monitors:
        table = Table(title="Loopback Sources")
        table.add_column("Name", style="cyan")
        table.add_column("Description", style="white")
        table.add_column("Sample Rate", justify="right")
        for monitor in monitors:
            table.add_row(monitor.name, monitor.description, f"{monitor.sample_rate} Hz")
        console.print(table)
    else:
        console.print("[dim]No loopback sources (PulseAudio monitors) found.[/dim]")

    return 0


def cmd_listen(args: argparse.Namespace) -> int:
    """Live transcription from the selected source."""
    from callscribe.session import create_session

    try:
        settings = _load_settings(args)
    except CallscribeError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1

    output_path = Path(args.output) if args.output else None
    sig_handler = SignalHandler()
    sig_handler.install()

    session = create_session(settings=settings)
    session.subscribe(TranscriptPrinter())

    try:
        source = args.source or settings.session.default_source
        console.print("[bold]Live transcription[/bold]")
        console.print(f"[dim]Source: {source} | Language: {settings.recognition.language}[/dim]")
        console.print("[dim]Press Ctrl+C to stop[/dim]\n")

        snapshot = session.start(source)
        if snapshot.state is SessionState.FAILED:
            return 1

        if snapshot.capture_path:
            console.print(f"[green]● Listening[/green] [dim]({snapshot.capture_path})[/dim]\n")

        while not sig_handler.should_stop() and session.is_recording:
            time.sleep(0.1)

        console.print("\n[yellow]Stopping...[/yellow]")
        record = session.stop()
        failed = session.snapshot().state is SessionState.FAILED

        if record is None:
            console.print("[dim]Nothing was transcribed.[/dim]")
        else:
            if output_path:
                content = record.to_text() if output_path.suffix == ".txt" else record.to_json()
                output_path.write_text(content, encoding="utf-8")
                console.print(f"\n[green]✓ Saved:[/green] {output_path}")
            console.print(f"\n[dim]Segments: {len(record.segments)} | Duration: {record.duration_s}s[/dim]")
        return 1 if failed else 0

    except CallscribeError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1
    finally:
        session.close()


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="callscribe",
        description="Live call transcription from microphone or system audio",
    )
    parser.add_argument(
        "--config",
        "-c",
        help="Path to settings.yml config file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # list-devices command
    list_parser = subparsers.add_parser(
        "list-devices",
        help="List audio input devices and loopback sources",
    )
    list_parser.set_defaults(func=cmd_list_devices)

    # listen command
    listen_parser = subparsers.add_parser(
        "listen",
        help="Transcribe live audio until interrupted",
    )
    listen_parser.add_argument(
        "--source",
        "-s",
        choices=SOURCE_KINDS,
        help="Audio source kind (default: from settings)",
    )
    listen_parser.add_argument(
        "--language",
        "-l",
        help="Recognition language tag, e.g. en-US (default: from settings)",
    )
    listen_parser.add_argument(
        "--model-size",
        choices=["tiny", "base", "small", "medium", "large-v3"],
        help="Whisper model size (default: from settings)",
    )
    listen_parser.add_argument(
        "--output",
        "-o",
        help="Write the call record to this file (plain text for .txt, JSON otherwise)",
    )
    listen_parser.set_defaults(func=cmd_listen)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
