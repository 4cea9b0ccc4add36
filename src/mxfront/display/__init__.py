"""Display boundary: the transcript document and the console sink."""

from mxfront.display.console import ConsoleSink, flatten_markup
from mxfront.display.document import (
    DisplayItem,
    DisplayKind,
    DisplaySink,
    Transcript,
)

__all__ = [
    "ConsoleSink",
    "DisplayItem",
    "DisplayKind",
    "DisplaySink",
    "Transcript",
    "flatten_markup",
]
