"""Command sender — the only writer to the engine connection."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from mxfront.constants import MULTILINE_MARKER, MULTILINE_NEWLINE, WRAP_COLUMN
from mxfront.display.document import DisplayKind
from mxfront.session.models import CommandEvent
from mxfront.session.recorder import SessionRecorder

logger = logging.getLogger(__name__)

NOT_CONNECTED_MESSAGE = "\nNot connected to the engine!\n"

#: Characters a long echoed line may be broken after.
_WRAP_CHARS = " +-"


@dataclass(frozen=True)
class PendingCommand:
    """A command as written to the engine."""

    text: str
    echo: bool = True
    silent: bool = True
    soft_wrap: bool = False


def split_input(text: str, column: int = WRAP_COLUMN) -> str:
    """Soft-wrap *text* for display.

    Once a line runs past *column*, the next space, ``+`` or ``-`` gets a
    newline and one space of indent inserted after it.  Only the echoed
    copy is wrapped; the engine always receives the original text.
    """
    out: list[str] = []
    col = 0
    for ch in text:
        out.append(ch)
        if ch == "\n":
            col = 0
        elif col > column and ch in _WRAP_CHARS:
            out.append("\n ")
            col = 0
        else:
            col += 1
    return "".join(out)


class CommandSender:
    """Formats, echoes and writes commands to the engine.

    *setup_commands* are written once, ahead of the first command, and
    are never echoed or added to the history.
    """

    def __init__(
        self,
        recorder: SessionRecorder,
        display: Callable[[DisplayKind, str], object],
        on_busy: Callable[[], None] | None = None,
        setup_commands: Sequence[str] = (),
    ) -> None:
        self._recorder = recorder
        self._display = display
        self._on_busy = on_busy
        self._setup_commands = list(setup_commands)
        self._setup_done = False
        self._writer: asyncio.StreamWriter | None = None
        self.history: list[str] = []

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    @property
    def setup_done(self) -> bool:
        return self._setup_done

    def attach(self, writer: asyncio.StreamWriter) -> None:
        self._writer = writer

    def detach(self) -> None:
        self._writer = None

    def send(
        self,
        text: str,
        echo: bool = True,
        silent: bool = True,
        soft_wrap: bool = False,
    ) -> PendingCommand | None:
        """Write *text* to the engine.

        ``echo`` shows the command in the display, ``silent`` adds it to
        the history and marks the engine busy.  Text starting with the
        multi-line marker has the marker stripped and its line
        separators turned into real newlines.

        Returns the command written, or None when not connected.
        """
        if not self.connected:
            self._display("error", NOT_CONNECTED_MESSAGE)
            logger.warning("Dropped command while disconnected: %s", text[:200])
            return None

        if not self._setup_done:
            self._setup_done = True
            for command in self._setup_commands:
                self._write(command)

        if text.startswith(MULTILINE_MARKER):
            text = text[len(MULTILINE_MARKER) :].replace(MULTILINE_NEWLINE, "\n")

        if echo:
            self._display("input", split_input(text) if soft_wrap else text)
        if silent:
            self.history.append(text)
            if self._on_busy is not None:
                self._on_busy()

        self._write(text)
        self._recorder.record(CommandEvent(ts="", seq=0, text=text, echo=echo, silent=silent))
        return PendingCommand(text=text, echo=echo, silent=silent, soft_wrap=soft_wrap)

    def _write(self, text: str) -> None:
        if self._writer is None:
            msg = "No engine connection to write to"
            raise ConnectionError(msg)
        logger.debug("-> %s", text[:200])
        self._writer.write((text + "\n").encode("utf-8"))
