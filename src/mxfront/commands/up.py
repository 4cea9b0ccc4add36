"""mxfront up — start the engine and the interactive REPL."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import select
import signal
import sys
import threading
from pathlib import Path

import click

from mxfront.batch.recording import BatchRecording
from mxfront.config.models import MxfrontConfig
from mxfront.config.parser import ConfigError, load_config
from mxfront.display.console import ConsoleSink
from mxfront.engine.controller import ProcessController
from mxfront.session.engine_session import EngineSession
from mxfront.session.recorder import EndReason, SessionRecorder
from mxfront.shutdown import ShutdownManager

logger = logging.getLogger(__name__)


@click.command()
@click.argument("path", required=False, type=click.Path(dir_okay=False))
@click.option(
    "-f",
    "--file",
    "config_file",
    type=click.Path(exists=False),
    default=None,
    help="Path to config file (default: ./mxfront.yaml).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output.")
def up(path: str | None, config_file: str | None, verbose: bool) -> None:
    """Start the engine and enter the interactive REPL.

    PATH, if given, is opened once the engine is ready.
    """
    try:
        config = load_config(Path(config_file) if config_file else None)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(_run_session(config, path, verbose))


# ------------------------------------------------------------------ #
# Front-end state
# ------------------------------------------------------------------ #


class Frontend:
    """Holds the current engine session across restarts.

    The display and the recorder outlive any single session; a restart
    closes the old session and starts a fresh one on the same display.
    """

    def __init__(
        self,
        config: MxfrontConfig,
        display: ConsoleSink,
        recorder: SessionRecorder,
        controller: ProcessController | None = None,
    ) -> None:
        self.config = config
        self.display = display
        self.recorder = recorder
        self._controller = controller
        self.restarts = 0
        self.session = self._new_session()

    def _new_session(self) -> EngineSession:
        return EngineSession(self.config, self.display, self.recorder, self._controller)

    async def start(self, path: str | None = None) -> bool:
        if path:
            self.session.open_file(path)
        return await self.session.start()

    async def restart(self, recording: BatchRecording | None = None) -> bool:
        """Kill the current engine and start a new one."""
        await self.session.close()
        self.restarts += 1
        logger.info("Restarting the engine (restart %d)", self.restarts)
        self.session = self._new_session()
        if recording is not None:
            self.session.attach_recording(recording)
        return await self.session.start()

    async def interrupt(self) -> None:
        await self.session.interrupt()


# ------------------------------------------------------------------ #
# Session runner
# ------------------------------------------------------------------ #


async def _run_session(config: MxfrontConfig, path: str | None, verbose: bool) -> None:
    """Wire up all components and run the REPL until shutdown."""
    recorder = SessionRecorder(
        engine=config.engine.executable,
        transcripts_dir=Path(config.session.transcripts_dir),
        enabled=config.session.record,
    )
    display = ConsoleSink(show_status=verbose)
    frontend = Frontend(config, display, recorder)

    click.echo(f"\n  mxfront -- {config.engine.executable}")
    click.echo(f"  Session: {recorder.session_id}")
    if recorder.enabled:
        click.echo(f"  Log:     {recorder.session_file}")
    click.echo("  Type /help for commands.")
    click.echo()

    shutdown_event = asyncio.Event()

    def _async_exception_handler(
        loop: asyncio.AbstractEventLoop,
        context: dict[str, object],
    ) -> None:
        msg = context.get("message", "Unhandled async exception")
        exc = context.get("exception")
        click.echo(click.style(f"  async error: {msg}", fg="red"), err=True)
        if exc:
            click.echo(f"    {type(exc).__name__}: {exc}", err=True)

    loop = asyncio.get_running_loop()
    loop.set_exception_handler(_async_exception_handler)
    _install_signal_handlers(loop, frontend, shutdown_event)

    shutdown_reason: EndReason = "user_shutdown"
    try:
        if not await frontend.start(path):
            click.echo("The engine could not be started; use /restart to retry.", err=True)
        shutdown_reason = await _repl_loop(frontend, shutdown_event)
    finally:
        shutdown_mgr = ShutdownManager(
            session=frontend.session,
            recorder=recorder,
            shutdown_event=shutdown_event,
            restarts=frontend.restarts,
        )
        await shutdown_mgr.execute(shutdown_reason)


def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    frontend: Frontend,
    shutdown_event: asyncio.Event,
) -> None:
    """SIGINT interrupts the engine; SIGTERM shuts the front-end down."""

    def _on_sigint() -> None:
        click.echo("\nInterrupting the engine...", err=True)
        loop.create_task(frontend.interrupt())

    # add_signal_handler is unavailable on Windows event loops.
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, _on_sigint)
        loop.add_signal_handler(signal.SIGTERM, shutdown_event.set)


# ------------------------------------------------------------------ #
# REPL loop
# ------------------------------------------------------------------ #


async def _repl_loop(frontend: Frontend, shutdown_event: asyncio.Event) -> EndReason:
    """Read user input in a loop, send it to the engine, handle commands.

    Returns the shutdown reason string.
    """
    reason: EndReason = "user_shutdown"

    # Bridge async shutdown_event → thread-safe cancel event so _read_input
    # (running in a thread) can be interrupted when SIGTERM arrives.
    thread_cancel = threading.Event()

    async def _bridge_shutdown() -> None:
        await shutdown_event.wait()
        thread_cancel.set()

    bridge_task = asyncio.create_task(_bridge_shutdown())

    try:
        while not shutdown_event.is_set():
            try:
                line = await asyncio.get_running_loop().run_in_executor(
                    None,
                    functools.partial(_read_input, thread_cancel),
                )
            except EOFError:
                break

            line = line.strip()
            if not line:
                continue

            # -- Slash commands (an engine comment also starts with "/") ----
            if line.startswith("/") and not line.startswith("/*"):
                should_break = await _handle_command(line, frontend)
                if should_break:
                    break
                continue

            # -- Plain text -> engine --------------------------------------
            session = frontend.session
            if session.connected and not session.can_edit:
                click.echo("The engine is busy. Use /interrupt to stop it.", err=True)
                continue
            session.submit(line)
    finally:
        bridge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await bridge_task

    if shutdown_event.is_set() and reason == "user_shutdown":
        reason = "ctrl_c"

    return reason


def _read_input(cancel: threading.Event | None = None) -> str:
    r"""Blocking stdin reader for use with ``run_in_executor``.

    Uses ``select.select`` with a 0.5 s timeout so the thread can check
    the *cancel* event between polls.  When *cancel* is set, an
    ``EOFError`` is raised so the REPL loop can exit cleanly.

    Lines ending with ``\\`` continue on the next line; the pieces are
    joined with newlines.
    """
    lines: list[str] = []
    prompt = "> "

    while True:
        sys.stdout.write(prompt)
        sys.stdout.flush()

        while cancel is None or not cancel.is_set():
            ready, _, _ = select.select([sys.stdin], [], [], 0.5)
            if ready:
                break
            if cancel is None:
                break

        if cancel is not None and cancel.is_set():
            raise EOFError

        line = sys.stdin.readline()
        if not line:
            raise EOFError
        line = line.rstrip("\n")

        if line.endswith("\\"):
            lines.append(line[:-1])
            prompt = "... "
        else:
            lines.append(line)
            return "\n".join(lines)


_HELP = """\
  /quit              leave mxfront
  /interrupt         interrupt the current computation
  /restart           kill the engine and start a new one
  /reset             clear all engine definitions (kill(all))
  /open FILE         open a file (.wxm recordings are replayed)
  /load FILE         load a package file
  /batch FILE        run a file with batch()
  /history           list the commands sent so far
  /rerun N           re-evaluate input N in place
  /dump              show buffered engine stdout and stderr"""


async def _handle_command(line: str, frontend: Frontend) -> bool:
    """Process a slash command. Returns ``True`` if the REPL should exit."""
    parts = line.split(None, 1)
    cmd = parts[0].lower()
    arg = parts[1].strip() if len(parts) > 1 else ""
    session = frontend.session

    if cmd == "/quit":
        return True

    if cmd == "/help":
        click.echo(_HELP)
        return False

    if cmd == "/interrupt":
        if not session.can_interrupt or not await session.interrupt():
            click.echo("Interrupt unavailable: the engine has not reported its pid.")
        return False

    if cmd == "/restart":
        await frontend.restart()
        return False

    if cmd == "/reset":
        session.send("kill(all);")
        return False

    if cmd in ("/open", "/load", "/batch"):
        if not arg:
            click.echo(f"Usage: {cmd} FILE")
            return False
        if cmd == "/open":
            recording = session.open_file(arg)
            if recording is not None:
                await frontend.restart(recording)
        else:
            session.open_file(arg, cmd[1:])
        return False

    if cmd == "/history":
        if not session.history:
            click.echo("No commands sent yet.")
        for number, text in enumerate(session.history, start=1):
            click.echo(f"  {number:>3}  {text}")
        return False

    if cmd == "/rerun":
        _rerun(frontend, arg)
        return False

    if cmd == "/dump":
        session.dump_output()
        return False

    click.echo(f"Unknown command: {cmd}")
    return False


def _rerun(frontend: Frontend, arg: str) -> None:
    inputs = [h for h, item in frontend.display.items() if item.kind == "input"]
    try:
        index = int(arg)
    except ValueError:
        click.echo("Usage: /rerun N")
        return
    if not 1 <= index <= len(inputs):
        click.echo(f"No input {index}; there are {len(inputs)} input(s).")
        return
    session = frontend.session
    if not session.can_edit:
        click.echo("The engine is busy. Use /interrupt to stop it.", err=True)
        return
    try:
        session.rerun(inputs[index - 1])
    except ValueError as exc:
        click.echo(f"Cannot re-evaluate input {index}: {exc}", err=True)
