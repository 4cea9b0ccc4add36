"""Engine process supervisor — spawn, interrupt, kill and output capture."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from mxfront.config.models import EngineConfig
from mxfront.engine.controller import ProcessController, SpawnError, select_controller

logger = logging.getLogger(__name__)

#: Seconds to wait for the engine to exit on its own before SIGTERM.
_SHUTDOWN_WAIT = 5.0

#: Seconds to wait after SIGTERM before SIGKILL.
_SIGTERM_WAIT = 3.0

#: Bytes read from the child's pipes per chunk.
_PUMP_CHUNK = 4096

#: Upper bound on buffered stdout/stderr; older bytes are discarded.
_MAX_BUFFER_BYTES = 1_048_576

__all__ = ["EngineProcess", "SpawnError"]


class EngineProcess:
    """Owns the engine child process.

    The pid used for interrupt and kill is the one the engine announces
    in its first output (``set_pid``), not the pid of the launched
    executable, which is usually a wrapper script.

    Exit notifications go to *on_exit* unless the process has been
    detached first, which is how a deliberate kill stays quiet.
    """

    def __init__(
        self,
        config: EngineConfig,
        controller: ProcessController | None = None,
        on_exit: Callable[[int | None], None] | None = None,
    ) -> None:
        self._config = config
        self._controller = controller or select_controller()
        self._on_exit = on_exit
        self._process: asyncio.subprocess.Process | None = None
        self._pid: int | None = None
        self._detached = False
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._tasks: list[asyncio.Task[None]] = []

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def pid(self) -> int | None:
        """Engine pid as announced by the engine, if known."""
        return self._pid

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def controller(self) -> ProcessController:
        return self._controller

    def set_pid(self, pid: int | None) -> None:
        self._pid = pid

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def build_command(self, port: int) -> list[str]:
        """Command line that starts the engine and points it at *port*."""
        return self._controller.build_command(self._config, port)

    async def spawn(self, port: int) -> None:
        """Launch the engine with the server directive for *port*.

        Raises:
            SpawnError: When the executable is missing or cannot be run.
        """
        args = self.build_command(port)
        logger.info("Starting engine: %s", " ".join(args))
        try:
            self._process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._controller.environment(self._config),
                start_new_session=True,
            )
        except FileNotFoundError as exc:
            msg = f"Engine executable not found: {args[0]}"
            raise SpawnError(msg) from exc
        except OSError as exc:
            msg = f"Failed to start the engine: {exc}"
            raise SpawnError(msg) from exc

        self._detached = False
        proc = self._process
        self._tasks = [
            asyncio.create_task(self._pump(proc.stdout, self._stdout)),
            asyncio.create_task(self._pump(proc.stderr, self._stderr)),
            asyncio.create_task(self._watch(proc)),
        ]

    def detach(self) -> None:
        """Stop reporting process exit to the exit callback."""
        self._detached = True

    async def interrupt(self) -> bool:
        """Ask the engine to abandon its current computation.

        Returns False when no pid has been announced yet.
        """
        if self._pid is None:
            return False
        await self._controller.interrupt(self._pid, self._config)
        return True

    def kill(self) -> bool:
        """Forcibly terminate the engine.

        Detaches first so no termination notice is reported.  Returns
        False when the pid is unknown; the caller then asks the engine to
        quit in-band.
        """
        self.detach()
        if self._pid is None:
            return False
        self._controller.kill(self._pid)
        self._pid = None
        return True

    async def shutdown(self) -> None:
        """Wait for the child to exit, escalating SIGTERM -> SIGKILL."""
        proc = self._process
        if proc is not None and proc.returncode is None:
            self.detach()
            try:
                await asyncio.wait_for(proc.wait(), timeout=_SHUTDOWN_WAIT)
            except TimeoutError:
                with contextlib.suppress(ProcessLookupError):
                    proc.terminate()
                try:
                    await asyncio.wait_for(proc.wait(), timeout=_SIGTERM_WAIT)
                except TimeoutError:
                    with contextlib.suppress(ProcessLookupError):
                        proc.kill()
                    await proc.wait()

        for task in self._tasks:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._tasks = []

    # ------------------------------------------------------------------ #
    # Output capture
    # ------------------------------------------------------------------ #

    def drain_output(self) -> str:
        """Return and clear whatever the engine has written to stdout."""
        text = self._stdout.decode(errors="replace")
        self._stdout.clear()
        return text

    def dump_output(self) -> tuple[str, str]:
        """Return and clear buffered ``(stdout, stderr)``."""
        stderr = self._stderr.decode(errors="replace")
        self._stderr.clear()
        return self.drain_output(), stderr

    async def _pump(self, stream: asyncio.StreamReader | None, buffer: bytearray) -> None:
        if stream is None:
            return
        try:
            while True:
                chunk = await stream.read(_PUMP_CHUNK)
                if not chunk:
                    break
                buffer.extend(chunk)
                overflow = len(buffer) - _MAX_BUFFER_BYTES
                if overflow > 0:
                    del buffer[:overflow]
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Error reading engine output: %s", exc)

    async def _watch(self, proc: asyncio.subprocess.Process) -> None:
        returncode = await proc.wait()
        logger.info("Engine process exited with code %s", returncode)
        if self._detached or self._on_exit is None:
            return
        self._on_exit(returncode)
