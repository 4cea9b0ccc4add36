"""Pydantic v2 models for session transcript events."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


class _EventBase(BaseModel):
    """Common envelope fields shared by every transcript event."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    ts: str = Field(description="ISO 8601 timestamp with milliseconds")
    seq: int = Field(ge=0, description="Monotonic sequence number")


class SessionStartEvent(_EventBase):
    """Emitted once at the start of a session."""

    type: Literal["session_start"] = "session_start"
    session_id: str = Field(description="Unique session identifier")
    engine: str = Field(description="Engine executable as configured")


class SessionEndEvent(_EventBase):
    """Emitted once when a session ends."""

    type: Literal["session_end"] = "session_end"
    reason: Literal["complete", "user_shutdown", "ctrl_c", "error"] = Field(
        description="Why the session ended",
    )
    duration_ms: int = Field(description="Total session duration in milliseconds")
    commands_sent: int = Field(description="Number of commands sent to the engine")


class CommandEvent(_EventBase):
    """A command written to the engine."""

    type: Literal["command"] = "command"
    text: str = Field(description="Command text, without the trailing newline")
    echo: bool = Field(description="Whether the command was echoed to the display")
    silent: bool = Field(description="Whether the command went into the history")


class OutputEvent(_EventBase):
    """An item appended to the display."""

    type: Literal["output"] = "output"
    kind: str = Field(description="Display kind: main_prompt, text, math, ...")
    text: str = Field(description="Displayed text or markup")


class StatusEvent(_EventBase):
    """Free-form status update."""

    type: Literal["status"] = "status"
    status: str = Field(description="Status message")


class ErrorEvent(_EventBase):
    """An error encountered during the session."""

    type: Literal["error"] = "error"
    error: str = Field(description="Error description")
    context: str | None = Field(
        default=None,
        description="Error context: spawn, server, connection, markup, batch, ...",
    )


def _event_discriminator(v: Any) -> str:
    """Extract the discriminator value from raw data or a model instance."""
    if isinstance(v, dict):
        return str(v.get("type", ""))
    return str(getattr(v, "type", ""))


SessionEvent = Annotated[
    Annotated[SessionStartEvent, Tag("session_start")]
    | Annotated[SessionEndEvent, Tag("session_end")]
    | Annotated[CommandEvent, Tag("command")]
    | Annotated[OutputEvent, Tag("output")]
    | Annotated[StatusEvent, Tag("status")]
    | Annotated[ErrorEvent, Tag("error")],
    Discriminator(_event_discriminator),
]
"""Discriminated union of all transcript event types."""
