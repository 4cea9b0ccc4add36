"""Structured batch recordings and their replay."""

from mxfront.batch.player import BatchPlayer
from mxfront.batch.recording import (
    SIGNATURE,
    BatchFormatError,
    BatchRecording,
    load_recording,
    parse_recording,
)

__all__ = [
    "SIGNATURE",
    "BatchFormatError",
    "BatchPlayer",
    "BatchRecording",
    "load_recording",
    "parse_recording",
]
