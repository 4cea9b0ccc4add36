"""Prints transcript items to the terminal with click."""

from __future__ import annotations

import xml.etree.ElementTree as ET

import click

from mxfront.display.document import DisplayKind, Transcript

_STYLES: dict[str, dict[str, object]] = {
    "main_prompt": {"fg": "red", "bold": True},
    "prompt": {"fg": "red"},
    "input": {"fg": "blue"},
    "math": {"fg": "cyan"},
    "error": {"fg": "red"},
    "comment": {"fg": "green", "italic": True},
    "section": {"fg": "yellow", "bold": True},
    "title": {"fg": "yellow", "bold": True, "underline": True},
}


def flatten_markup(markup: str) -> str:
    """Render math markup as plain text by concatenating its text nodes."""
    try:
        root = ET.fromstring(f"<span>{markup}</span>")
    except ET.ParseError:
        return markup
    return "".join(root.itertext())


class ConsoleSink(Transcript):
    """Transcript that also echoes every change to the terminal.

    Status updates are only printed when *show_status* is set, since the
    terminal has no status bar to put them in.
    """

    def __init__(self, show_status: bool = False) -> None:
        super().__init__()
        self._show_status = show_status

    def append(self, kind: DisplayKind, text: str) -> int:
        handle = super().append(kind, text)
        self._echo(kind, text)
        return handle

    def replace(self, handle: int, text: str) -> None:
        super().replace(handle, text)
        self._echo(self.get(handle).kind, text)

    def status(self, text: str) -> None:
        super().status(text)
        if self._show_status:
            click.echo(click.style(f"[{text}]", dim=True), err=True)

    def _echo(self, kind: DisplayKind, text: str) -> None:
        if kind == "math":
            text = flatten_markup(text)
        style = _STYLES.get(kind)
        if style:
            text = click.style(text, **style)  # type: ignore[arg-type]
        click.echo(text, err=kind == "error")
