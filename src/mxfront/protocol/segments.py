"""Classified slices of engine output produced by the stream segmenter."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass


class MalformedSegmentError(Exception):
    """Raised when generated math markup cannot be parsed."""


@dataclass(frozen=True)
class Prompt:
    """A prompt block, with its classification already applied."""

    text: str
    is_main: bool
    alternate: bool = False


@dataclass(frozen=True)
class MathBlock:
    """A complete ``<mth ...>...</mth>`` block."""

    markup: str


@dataclass(frozen=True)
class PlainText:
    """Unstructured engine output."""

    text: str


@dataclass(frozen=True)
class DiagnosticBanner:
    """A fixed banner announcing the engine entered its Lisp debugger."""

    text: str


@dataclass(frozen=True)
class FirstPrompt:
    """The one-time first prompt, with the banner text that preceded it."""

    banner: str
    pid: int | None


OutputSegment = Prompt | MathBlock | PlainText | DiagnosticBanner | FirstPrompt


def validate_markup(markup: str) -> None:
    """Check that *markup* is well-formed.

    The engine emits math fragments that are only well-formed once
    wrapped in a single root, so the check wraps them the same way the
    renderer will.

    Raises:
        MalformedSegmentError: If the markup does not parse.
    """
    try:
        ET.fromstring(f"<span>{markup}</span>")
    except ET.ParseError as exc:
        msg = f"There was an error in generated XML: {exc}"
        raise MalformedSegmentError(msg) from exc
