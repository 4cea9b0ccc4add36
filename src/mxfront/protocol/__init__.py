"""Engine output protocol: segment types and the stream segmenter."""

from mxfront.protocol.segmenter import (
    StreamSegmenter,
    classify_prompt,
    parse_pid,
    split_markup,
)
from mxfront.protocol.segments import (
    DiagnosticBanner,
    FirstPrompt,
    MalformedSegmentError,
    MathBlock,
    OutputSegment,
    PlainText,
    Prompt,
    validate_markup,
)

__all__ = [
    "DiagnosticBanner",
    "FirstPrompt",
    "MalformedSegmentError",
    "MathBlock",
    "OutputSegment",
    "PlainText",
    "Prompt",
    "StreamSegmenter",
    "classify_prompt",
    "parse_pid",
    "split_markup",
    "validate_markup",
]
