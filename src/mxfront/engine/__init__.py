"""Engine process supervision and the connection endpoint."""

from mxfront.engine.controller import (
    PosixController,
    ProcessController,
    SpawnError,
    WindowsController,
    find_engine_binary,
    select_controller,
)
from mxfront.engine.server import EngineServer, ServerUnavailableError
from mxfront.engine.supervisor import EngineProcess

__all__ = [
    "EngineProcess",
    "EngineServer",
    "PosixController",
    "ProcessController",
    "ServerUnavailableError",
    "SpawnError",
    "WindowsController",
    "find_engine_binary",
    "select_controller",
]
