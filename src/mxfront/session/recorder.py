"""Session recorder — append-only JSONL transcript of a session."""

from __future__ import annotations

import threading
import time
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Literal

from mxfront.session.models import (
    CommandEvent,
    SessionEndEvent,
    SessionEvent,
    SessionStartEvent,
)

EndReason = Literal["complete", "user_shutdown", "ctrl_c", "error"]


class SessionRecorder:
    """Records transcript events to an append-only JSONL file.

    Thread-safe: all writes are serialized through a ``threading.Lock``.
    Crash-safe: the file is flushed after every event.

    With ``enabled=False`` nothing is written, but sequence numbers and
    command counts are still tracked so callers need no special casing.
    """

    def __init__(
        self,
        engine: str,
        transcripts_dir: Path | None = None,
        enabled: bool = True,
    ) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        self._seq = 0
        self._commands = 0
        self._closed = False
        self._start_ns = time.monotonic_ns()

        # Session identity
        self._session_id = uuid.uuid4().hex[:12]

        if transcripts_dir is None:
            transcripts_dir = Path("transcripts")
        date_str = datetime.now(tz=UTC).strftime("%Y-%m-%d")
        self._session_file = transcripts_dir / f"{date_str}_{self._session_id}.jsonl"

        self._fh: IO[str] | None = None
        if enabled:
            transcripts_dir.mkdir(parents=True, exist_ok=True)
            self._fh = self._session_file.open("a", encoding="utf-8")
        try:
            self.record(
                SessionStartEvent(
                    ts="",  # stamped by record()
                    seq=0,  # stamped by record()
                    session_id=self._session_id,
                    engine=engine,
                )
            )
        except Exception:
            self._close_handles()
            raise

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        """Unique session identifier (12-char hex)."""
        return self._session_id

    @property
    def session_file(self) -> Path:
        """Path to the JSONL transcript (may not exist when disabled)."""
        return self._session_file

    @property
    def enabled(self) -> bool:
        return self._fh is not None

    @property
    def event_count(self) -> int:
        """Number of events recorded so far."""
        return self._seq

    @property
    def command_count(self) -> int:
        """Number of commands sent to the engine so far."""
        return self._commands

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(self, event: SessionEvent) -> None:
        """Write *event* to the transcript.

        Automatically stamps ``ts`` and ``seq`` on every event, then
        flushes to disk so no data is lost on a crash.

        Silently drops events after the recorder has been closed.
        """
        with self._lock:
            if self._closed:
                return
            event.seq = self._seq
            event.ts = _iso_now()
            self._seq += 1
            if isinstance(event, CommandEvent):
                self._commands += 1
            if self._fh is None:
                return
            line = event.model_dump_json(by_alias=True)
            self._fh.write(line + "\n")
            self._fh.flush()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def end(self, reason: EndReason) -> None:
        """Write a ``session_end`` event and close the file handle.

        Idempotent: calling ``end()`` on an already-closed recorder is a
        no-op.
        """
        if self._closed:
            return

        elapsed_ns = time.monotonic_ns() - self._start_ns
        duration_ms = int(elapsed_ns / 1_000_000)

        self.record(
            SessionEndEvent(
                ts="",
                seq=0,
                reason=reason,
                duration_ms=duration_ms,
                commands_sent=self._commands,
            )
        )
        self.close()

    def close(self) -> None:
        """Close the file handle **without** writing a ``session_end`` event."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._close_handles()

    def _close_handles(self) -> None:
        """Close the underlying file handle (caller must hold lock or be in init)."""
        if self._fh is not None and not self._fh.closed:
            self._fh.close()


def _iso_now() -> str:
    """Return the current UTC time as ISO 8601 with milliseconds."""
    return datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
