"""mxfront transcripts — list and inspect recorded sessions."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import click
from pydantic import TypeAdapter, ValidationError

from mxfront.session.models import (
    CommandEvent,
    ErrorEvent,
    OutputEvent,
    SessionEndEvent,
    SessionEvent,
    SessionStartEvent,
    StatusEvent,
)

_EVENT_ADAPTER: TypeAdapter[SessionEvent] = TypeAdapter(SessionEvent)


@dataclass
class TranscriptMetadata:
    """Metadata extracted from a transcript file."""

    session_id: str
    engine: str
    start_ts: datetime
    end_ts: datetime | None
    duration_ms: int | None
    end_reason: str | None
    command_count: int
    error_count: int
    event_count: int
    file_path: Path
    is_complete: bool

    @property
    def duration_str(self) -> str:
        """Human-readable duration string."""
        if self.duration_ms is None:
            return "in progress"
        seconds = self.duration_ms / 1000
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes = seconds / 60
        if minutes < 60:
            return f"{minutes:.1f}m"
        hours = minutes / 60
        return f"{hours:.1f}h"


@dataclass
class TranscriptData:
    """Parsed transcript ready for display."""

    metadata: TranscriptMetadata
    events: list[SessionEvent]
    parse_warnings: list[str]


def _parse_transcript_file(file_path: Path) -> TranscriptData:
    """Parse a transcript JSONL file, collecting warnings for bad lines."""
    events: list[SessionEvent] = []
    warnings: list[str] = []

    with file_path.open("r", encoding="utf-8") as fh:
        for line_num, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue

            try:
                raw = json.loads(line)
                events.append(_parse_event(raw))
            except json.JSONDecodeError as e:
                warnings.append(f"Line {line_num}: Invalid JSON — {e}")
            except ValidationError as e:
                warnings.append(f"Line {line_num}: Validation error — {e}")

    metadata = _extract_metadata(file_path, events)
    return TranscriptData(metadata=metadata, events=events, parse_warnings=warnings)


def _parse_event(raw: dict[str, Any]) -> SessionEvent:
    return _EVENT_ADAPTER.validate_python(raw)


def _parse_ts(ts: str) -> datetime:
    return datetime.fromisoformat(ts.replace("Z", "+00:00"))


def _extract_metadata(file_path: Path, events: list[SessionEvent]) -> TranscriptMetadata:
    session_id = "unknown"
    engine = "unknown"
    start_ts = datetime.fromtimestamp(file_path.stat().st_mtime).astimezone()
    end_ts: datetime | None = None
    duration_ms: int | None = None
    end_reason: str | None = None
    command_count = 0
    error_count = 0
    is_complete = False

    for event in events:
        if isinstance(event, SessionStartEvent):
            session_id = event.session_id
            engine = event.engine
            start_ts = _parse_ts(event.ts)
        elif isinstance(event, SessionEndEvent):
            end_ts = _parse_ts(event.ts)
            duration_ms = event.duration_ms
            end_reason = event.reason
            is_complete = True
        elif isinstance(event, CommandEvent):
            command_count += 1
        elif isinstance(event, ErrorEvent):
            error_count += 1

    return TranscriptMetadata(
        session_id=session_id,
        engine=engine,
        start_ts=start_ts,
        end_ts=end_ts,
        duration_ms=duration_ms,
        end_reason=end_reason,
        command_count=command_count,
        error_count=error_count,
        event_count=len(events),
        file_path=file_path,
        is_complete=is_complete,
    )


def _list_transcripts(transcripts_dir: Path) -> list[TranscriptMetadata]:
    """Metadata for every transcript, most recent first."""
    if not transcripts_dir.exists():
        return []

    found: list[TranscriptMetadata] = []
    for file_path in transcripts_dir.glob("*.jsonl"):
        try:
            found.append(_parse_transcript_file(file_path).metadata)
        except OSError as e:
            click.echo(f"Failed to read {file_path.name}: {e}", err=True)

    found.sort(key=lambda m: m.start_ts, reverse=True)
    return found


def _format_transcript_list(transcripts: list[TranscriptMetadata]) -> None:
    if not transcripts:
        click.echo("No transcripts found. Run `mxfront up` to create one.")
        return

    click.echo(f"\nFound {len(transcripts)} transcript(s):\n")

    header = (
        f"{'SESSION ID':<14} {'ENGINE':<20} {'START':<20} "
        f"{'DURATION':<12} {'COMMANDS':<10} {'ERRORS':<8}"
    )
    click.echo(header)
    click.echo("─" * len(header))

    for meta in transcripts:
        start_str = meta.start_ts.strftime("%Y-%m-%d %H:%M:%S")
        status_marker = "✓" if meta.is_complete else "⋯"
        row = (
            f"{meta.session_id:<14} "
            f"{meta.engine:<20} "
            f"{start_str:<20} "
            f"{meta.duration_str:<12} "
            f"{meta.command_count:<10} "
            f"{meta.error_count:<8} {status_marker}"
        )
        click.echo(row)

    click.echo()


def _format_transcript_detail(data: TranscriptData) -> None:
    meta = data.metadata

    click.echo(f"\nSession: {meta.session_id}")
    click.echo(f"   Engine: {meta.engine}")
    click.echo(f"   Started: {meta.start_ts.strftime('%Y-%m-%d %H:%M:%S')}")
    if meta.end_ts:
        click.echo(f"   Ended: {meta.end_ts.strftime('%Y-%m-%d %H:%M:%S')} ({meta.end_reason})")
    click.echo(f"   Duration: {meta.duration_str}")
    click.echo(f"   Status: {'Complete' if meta.is_complete else 'In progress'}")
    click.echo("\nStatistics:")
    click.echo(f"   Events: {meta.event_count:,}")
    click.echo(f"   Commands: {meta.command_count:,}")
    click.echo(f"   Errors: {meta.error_count:,}")

    if data.parse_warnings:
        click.echo(f"\nParse warnings ({len(data.parse_warnings)}):")
        for warning in data.parse_warnings[:10]:
            click.echo(f"   {warning}")
        if len(data.parse_warnings) > 10:
            click.echo(f"   ... and {len(data.parse_warnings) - 10} more")

    click.echo()


def _format_event(event: SessionEvent) -> str | None:
    """One log line for *event*, or None for events not worth showing."""
    if isinstance(event, CommandEvent):
        return click.style(f"> {event.text}", fg="blue")
    if isinstance(event, OutputEvent):
        if event.kind == "main_prompt":
            return click.style(event.text, fg="red", bold=True)
        return event.text
    if isinstance(event, ErrorEvent):
        return click.style(f"! [{event.context}] {event.error}", fg="red")
    if isinstance(event, StatusEvent):
        return click.style(f"  ({event.status})", dim=True)
    return None


@click.command()
@click.argument("session_id", required=False)
@click.option(
    "-d",
    "--transcripts-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default="transcripts",
    help="Directory containing transcript files (default: ./transcripts)",
)
@click.option(
    "-e",
    "--events",
    "show_events",
    is_flag=True,
    help="Print the recorded commands and output after the summary.",
)
def transcripts(session_id: str | None, transcripts_dir: Path, show_events: bool) -> None:
    """List recorded sessions, or show one in detail.

    If SESSION_ID is omitted, list all available transcripts.
    """
    if session_id is None:
        _format_transcript_list(_list_transcripts(transcripts_dir))
        return

    matching_files = list(transcripts_dir.glob(f"*{session_id}*.jsonl"))
    if not matching_files:
        click.echo(f"Transcript not found: {session_id}", err=True)
        click.echo(
            "\nTip: Run 'mxfront transcripts' to list all available transcripts.",
            err=True,
        )
        raise SystemExit(1)

    if len(matching_files) > 1:
        click.echo(f"Ambiguous session ID: {session_id}", err=True)
        click.echo("   Matches multiple files:", err=True)
        for f in matching_files:
            click.echo(f"     • {f.name}", err=True)
        raise SystemExit(1)

    data = _parse_transcript_file(matching_files[0])
    _format_transcript_detail(data)

    if show_events:
        for event in data.events:
            line = _format_event(event)
            if line is not None:
                click.echo(line)
