"""Pydantic v2 models for mxfront.yaml configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mxfront.constants import DEFAULT_PORT, MAX_PORT


class EngineConfig(BaseModel):
    """How to launch the engine and where to listen for it."""

    model_config = ConfigDict(extra="forbid")

    executable: str = Field(
        default="maxima",
        description="Engine executable name or path",
    )
    parameters: str = Field(
        default="",
        description="Extra command-line parameters passed to the engine",
    )
    default_port: int = Field(
        default=DEFAULT_PORT,
        ge=1,
        le=65535,
        description="First port tried when starting the server",
    )
    max_port: int = Field(
        default=MAX_PORT,
        ge=1,
        le=65535,
        description="Highest port tried before giving up",
    )
    mathml_library: str | None = Field(
        default=None,
        description="Path of the Lisp markup library loaded at setup",
    )
    show_header: bool = Field(
        default=True,
        description="Show the engine's startup banner",
    )

    @model_validator(mode="after")
    def _validate_port_range(self) -> EngineConfig:
        if self.max_port < self.default_port:
            msg = (
                f"max_port ({self.max_port}) must not be lower than "
                f"default_port ({self.default_port})"
            )
            raise ValueError(msg)
        if not self.executable.strip():
            msg = "Engine 'executable' must not be empty"
            raise ValueError(msg)
        return self


class SessionConfig(BaseModel):
    """Settings for the interactive session."""

    model_config = ConfigDict(extra="forbid")

    record: bool = Field(
        default=True,
        description="Whether to record session transcripts",
    )
    transcripts_dir: str = Field(
        default="transcripts",
        description="Directory transcripts are written to",
    )
    soft_wrap: bool = Field(
        default=True,
        description="Soft-wrap long echoed input",
    )


class WindowConfig(BaseModel):
    """Settings handed to the display front-end."""

    model_config = ConfigDict(extra="forbid")

    restore: bool = Field(
        default=False,
        description="Restore the previous window size and position",
    )


class MxfrontConfig(BaseModel):
    """Top-level mxfront.yaml configuration."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(description="Config schema version")
    engine: EngineConfig = Field(
        default_factory=EngineConfig,
        description="Engine launch settings",
    )
    session: SessionConfig = Field(
        default_factory=SessionConfig,
        description="Session settings",
    )
    window: WindowConfig = Field(
        default_factory=WindowConfig,
        description="Display front-end settings",
    )
