"""ShutdownManager — orchestrates the 3-step graceful shutdown sequence."""

from __future__ import annotations

import asyncio
import logging
import time

import click

from mxfront.session.engine_session import EngineSession
from mxfront.session.recorder import EndReason, SessionRecorder

logger = logging.getLogger(__name__)


def _format_duration(seconds: float) -> str:
    """Format a duration as '1m 22s' or '34.2s'."""
    if seconds >= 60:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs:02d}s"
    return f"{seconds:.1f}s"


class ShutdownManager:
    """Orchestrates the 3-step graceful shutdown sequence.

    Steps:
        1. SIGNAL  -- set the shutdown flag, mark the session as closing
        2. KILL    -- kill the engine and tear down its connection
        3. CLOSE   -- write session_end, print summary
    """

    def __init__(
        self,
        session: EngineSession,
        recorder: SessionRecorder,
        shutdown_event: asyncio.Event,
        restarts: int = 0,
    ) -> None:
        self._session = session
        self._recorder = recorder
        self._shutdown_event = shutdown_event
        self._start_time = time.monotonic()
        self._restarts = restarts

    async def execute(self, reason: EndReason) -> None:
        """Run the full shutdown sequence."""
        self._signal()
        await self._kill()
        self._close(reason)

    # ------------------------------------------------------------------ #
    # Step 1: SIGNAL
    # ------------------------------------------------------------------ #

    def _signal(self) -> None:
        self._shutdown_event.set()
        self._session.mark_closing()

    # ------------------------------------------------------------------ #
    # Step 2: KILL
    # ------------------------------------------------------------------ #

    async def _kill(self) -> None:
        try:
            await self._session.close()
        except Exception:
            logger.exception("Error shutting down the engine session")

    # ------------------------------------------------------------------ #
    # Step 3: CLOSE
    # ------------------------------------------------------------------ #

    def _close(self, reason: EndReason) -> None:
        self._recorder.end(reason)

        elapsed = time.monotonic() - self._start_time
        summary_parts = [
            f"\nSession ended ({reason})",
            _format_duration(elapsed),
            f"{self._recorder.command_count} command(s)",
            f"{self._recorder.event_count} events",
        ]
        if self._restarts > 0:
            summary_parts.append(f"{self._restarts} restart(s)")

        click.echo(" | ".join(summary_parts))
        if self._recorder.enabled:
            click.echo(f"Log: {self._recorder.session_file}")
