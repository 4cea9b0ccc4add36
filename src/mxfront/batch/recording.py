"""Structured batch recordings (``.wxm`` files).

A recording is plain engine source with marker comments fencing each
region, so the engine can also run it directly with ``batch()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

SIGNATURE = "/* [wxMaxima batch file version 1] [ DO NOT EDIT BY HAND! ]*/"

COMMENT_START = "/* [wxMaxima: comment start ]"
COMMENT_END = "   [wxMaxima: comment end   ] */"
SECTION_START = "/* [wxMaxima: section start ]"
SECTION_END = "   [wxMaxima: section end   ] */"
TITLE_START = "/* [wxMaxima: title   start ]"
TITLE_END = "   [wxMaxima: title   end   ] */"
INPUT_START = "/* [wxMaxima: input   start ] */"
INPUT_END = "/* [wxMaxima: input   end   ] */"


class BatchFormatError(Exception):
    """The file is not a structured recording or cannot be read."""


@dataclass
class BatchRecording:
    """Lines of a recording and the replay position within them."""

    lines: list[str]
    cursor: int = 0
    completed: bool = False
    source: Path | None = field(default=None, compare=False)

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.lines)

    def next_line(self) -> str:
        """Return the line under the cursor and advance past it."""
        if self.exhausted:
            msg = "Recording has no more lines"
            raise IndexError(msg)
        line = self.lines[self.cursor]
        self.cursor += 1
        return line

    def clear(self) -> None:
        """Drop all lines; a cleared recording cannot be resumed."""
        self.lines = []
        self.cursor = 0
        self.completed = True


def parse_recording(text: str, source: Path | None = None) -> BatchRecording:
    """Build a recording from file contents.

    Raises:
        BatchFormatError: When the first line is not the signature.
    """
    lines = text.splitlines()
    if not lines or lines[0].rstrip() != SIGNATURE:
        name = source.name if source is not None else "input"
        msg = f"{name} is not a wxMaxima batch file"
        raise BatchFormatError(msg)
    return BatchRecording(lines=lines, source=source)


def load_recording(path: Path) -> BatchRecording:
    """Read and validate the recording at *path*."""
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        msg = f"Error opening file {path}: {exc}"
        raise BatchFormatError(msg) from exc
    recording = parse_recording(text, source=Path(path))
    logger.info("Loaded recording %s (%d lines)", path, len(recording.lines))
    return recording
