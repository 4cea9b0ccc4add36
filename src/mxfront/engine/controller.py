"""Platform process controllers: how the engine is launched, interrupted and killed.

POSIX platforms interrupt and kill the engine with signals.  Windows has
no SIGINT delivery to another process, so it relies on the ``winkill``
helper shipped with the engine and finds the real engine binary inside
the installation tree.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shlex
import signal
import sys
from pathlib import Path
from typing import Protocol

from mxfront.config.models import EngineConfig

logger = logging.getLogger(__name__)


class SpawnError(Exception):
    """The engine process could not be launched."""


class ProcessController(Protocol):
    """Platform-specific process operations."""

    #: Whether the startup banner arrives on the child's stdout.
    banner_from_stdout: bool

    def build_command(self, config: EngineConfig, port: int) -> list[str]: ...

    def environment(self, config: EngineConfig) -> dict[str, str] | None: ...

    async def interrupt(self, pid: int, config: EngineConfig) -> None: ...

    def kill(self, pid: int) -> None: ...


class PosixController:
    """Signal-based control.  The server directive goes in ``-r``."""

    banner_from_stdout = True

    def build_command(self, config: EngineConfig, port: int) -> list[str]:
        return [
            config.executable,
            *shlex.split(config.parameters),
            "-r",
            f":lisp (setup-server {port})",
        ]

    def environment(self, config: EngineConfig) -> dict[str, str] | None:
        return None

    async def interrupt(self, pid: int, config: EngineConfig) -> None:
        logger.debug("Sending SIGINT to engine pid %d", pid)
        with contextlib.suppress(ProcessLookupError):
            os.kill(pid, signal.SIGINT)

    def kill(self, pid: int) -> None:
        logger.debug("Sending SIGKILL to engine pid %d", pid)
        with contextlib.suppress(ProcessLookupError):
            os.kill(pid, signal.SIGKILL)


class WindowsController:
    """Helper-program control for platforms without POSIX signals."""

    banner_from_stdout = False

    _LAUNCHER_SUFFIX = "\\bin\\maxima.bat"

    def build_command(self, config: EngineConfig, port: int) -> list[str]:
        params = shlex.split(config.parameters, posix=False)
        prefix = self._install_prefix(config)
        if prefix is None:
            return [config.executable, *params, "-s", str(port)]
        engine = find_engine_binary(prefix)
        return [
            str(engine),
            *params,
            "-eval",
            f"(maxima::start-server {port})",
            "-eval",
            "(run)",
            "-f",
        ]

    def environment(self, config: EngineConfig) -> dict[str, str] | None:
        prefix = self._install_prefix(config)
        if prefix is None:
            return None
        env = dict(os.environ)
        env["MAXIMA_PREFIX"] = str(prefix)
        env["PATH"] = f"{prefix / 'bin'};{env.get('PATH', '')}"
        env.setdefault("HOME", str(Path.home()))
        return env

    async def interrupt(self, pid: int, config: EngineConfig) -> None:
        helper = Path(config.executable).parent / "winkill.exe"
        logger.debug("Interrupting engine pid %d via %s", pid, helper)
        try:
            proc = await asyncio.create_subprocess_exec(
                str(helper),
                "-INT",
                str(pid),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.warning("Cannot run interrupt helper %s: %s", helper, exc)
            return
        await proc.wait()

    def kill(self, pid: int) -> None:
        # os.kill maps to TerminateProcess on Windows.
        with contextlib.suppress(ProcessLookupError, OSError):
            os.kill(pid, signal.SIGTERM)

    def _install_prefix(self, config: EngineConfig) -> Path | None:
        exe = config.executable
        if not exe.lower().endswith(self._LAUNCHER_SUFFIX):
            return None
        return Path(exe[: -len(self._LAUNCHER_SUFFIX)])


def find_engine_binary(prefix: Path) -> Path:
    """Locate ``maxima.exe`` below ``<prefix>/lib/maxima``.

    Raises:
        SpawnError: When the installation tree holds no engine binary.
    """
    lib_dir = prefix / "lib" / "maxima"
    for candidate in sorted(lib_dir.rglob("maxima.exe")):
        if candidate.is_file():
            return candidate
    msg = f"No maxima.exe found below {lib_dir}"
    raise SpawnError(msg)


def select_controller(platform: str | None = None) -> ProcessController:
    """Return the controller for *platform* (defaults to ``sys.platform``)."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        return WindowsController()
    return PosixController()
