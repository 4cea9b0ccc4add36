"""Configuration models and parser for mxfront.yaml."""

from mxfront.config.models import (
    EngineConfig,
    MxfrontConfig,
    SessionConfig,
    WindowConfig,
)
from mxfront.config.parser import ConfigError, load_config

__all__ = [
    "ConfigError",
    "EngineConfig",
    "MxfrontConfig",
    "SessionConfig",
    "WindowConfig",
    "load_config",
]
