"""Batch player — replays a recording one input region per main prompt."""

from __future__ import annotations

import logging
from collections.abc import Callable

from mxfront.batch.recording import (
    COMMENT_END,
    COMMENT_START,
    INPUT_END,
    INPUT_START,
    SECTION_END,
    SECTION_START,
    TITLE_END,
    TITLE_START,
    BatchRecording,
)
from mxfront.constants import COMMENT_PROMPT
from mxfront.display.document import DisplayKind

logger = logging.getLogger(__name__)

#: Display-only regions: start marker -> (end marker, display kind).
_DISPLAY_REGIONS: dict[str, tuple[str, DisplayKind]] = {
    COMMENT_START: (COMMENT_END, "comment"),
    SECTION_START: (SECTION_END, "section"),
    TITLE_START: (TITLE_END, "title"),
}


class BatchPlayer:
    """Walks a recording, pausing after each input region it sends.

    *display* shows prompts and display-only regions; *send* transmits
    the text of an input region.  Replay resumes on the next call to
    ``advance``, which the session makes for every main prompt.
    """

    def __init__(
        self,
        recording: BatchRecording,
        display: Callable[[DisplayKind, str], object],
        send: Callable[[str], object],
    ) -> None:
        self._recording = recording
        self._display = display
        self._send = send

    @property
    def recording(self) -> BatchRecording:
        return self._recording

    @property
    def active(self) -> bool:
        return not self._recording.completed

    def advance(self, prompt: str) -> bool:
        """Continue replay at main prompt *prompt*.

        Returns True if an input region was sent, in which case replay
        is paused until the next main prompt.
        """
        rec = self._recording
        if rec.completed:
            self._display("main_prompt", prompt)
            return False

        sent = False
        while not sent and not rec.exhausted:
            line = rec.next_line()
            region = _DISPLAY_REGIONS.get(line)
            if region is not None:
                end_marker, kind = region
                self._display("main_prompt", COMMENT_PROMPT)
                self._display(kind, self._collect(end_marker))
            elif line == INPUT_START:
                self._display("main_prompt", prompt)
                self._send(self._collect(INPUT_END))
                sent = True

        if not sent:
            self._display("main_prompt", prompt)
            if rec.exhausted:
                logger.info("Recording replay complete")
                rec.clear()
        return sent

    def _collect(self, end_marker: str) -> str:
        # A region left open at end of file takes the remaining lines.
        rec = self._recording
        parts: list[str] = []
        while not rec.exhausted:
            line = rec.next_line()
            if line == end_marker:
                break
            parts.append(line)
        return "\n".join(parts)
