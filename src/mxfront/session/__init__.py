"""Session layer: protocol state, command sending and transcript recording."""

from mxfront.session.models import (
    CommandEvent,
    ErrorEvent,
    OutputEvent,
    SessionEndEvent,
    SessionEvent,
    SessionStartEvent,
    StatusEvent,
)
from mxfront.session.recorder import EndReason, SessionRecorder
from mxfront.session.sender import CommandSender, PendingCommand, split_input
from mxfront.session.state import InvalidTransitionError, SessionPhase, SessionState
from mxfront.session.engine_session import EngineSession

__all__ = [
    "CommandEvent",
    "CommandSender",
    "EndReason",
    "EngineSession",
    "ErrorEvent",
    "InvalidTransitionError",
    "OutputEvent",
    "PendingCommand",
    "SessionEndEvent",
    "SessionEvent",
    "SessionPhase",
    "SessionRecorder",
    "SessionStartEvent",
    "SessionState",
    "StatusEvent",
    "split_input",
]
