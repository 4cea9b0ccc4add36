"""EngineSession — one engine process, its connection and the protocol state.

The session ties the pieces together: it negotiates a port, launches the
engine against it, feeds everything the engine writes through the
segmenter and dispatches the resulting segments by type.  A session is
single-use; restarting the engine means building a new one.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from mxfront import __version__
from mxfront.batch.player import BatchPlayer
from mxfront.batch.recording import BatchFormatError, BatchRecording, load_recording
from mxfront.config.models import MxfrontConfig
from mxfront.constants import (
    FIRST_PROMPT,
    PROMPT_PREFIX,
    PROMPT_SUFFIX,
)
from mxfront.display.document import DisplayKind, Transcript
from mxfront.engine.controller import ProcessController, SpawnError, select_controller
from mxfront.engine.server import EngineServer, ServerUnavailableError
from mxfront.engine.supervisor import EngineProcess
from mxfront.protocol.segmenter import StreamSegmenter
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
from mxfront.session.models import ErrorEvent, OutputEvent, StatusEvent
from mxfront.session.recorder import SessionRecorder
from mxfront.session.sender import CommandSender, PendingCommand
from mxfront.session.state import SessionPhase, SessionState

logger = logging.getLogger(__name__)

#: Bytes read from the engine connection per chunk.
_SOCKET_CHUNK = 4096

LOST_CONNECTION_MESSAGE = (
    "\nCLIENT: Lost socket connection to the engine.\n"
    "Restart the engine with '/restart'.\n"
)


def build_setup_commands(library: str | None) -> list[str]:
    """Commands that install the prompt markers and load the markup library."""
    commands = [
        f':lisp-quiet (setf *prompt-suffix* "{PROMPT_SUFFIX}")',
        f':lisp-quiet (setf *prompt-prefix* "{PROMPT_PREFIX}")',
        ":lisp-quiet (setf $IN_NETMATH nil)",
        ":lisp-quiet (setf $SHOW_OPENPLOT t)",
    ]
    if library:
        commands.append(f':lisp-quiet ($load "{library}")')
    return commands


def open_file_command(path: str, command: str | None = None) -> tuple[str, bool]:
    """Engine command that opens *path*, and whether it should be echoed.

    An explicit *command* wins; otherwise the file extension decides.
    """
    if os.name == "nt":
        path = path.replace("\\", "/")
    if command:
        return f'{command}("{path}")$', True
    suffix = Path(path).suffix.lower()
    if suffix == ".wxm":
        return f'batch("{path}")$', True
    if suffix == ".sav":
        return f'loadsession("{path}")$', False
    if suffix == ".dem":
        return f'demo("{path}")$', True
    return f'load("{path}")$', True


class EngineSession:
    """Drives one engine instance.

    Display output goes to *display*; every command, output item, status
    change and error is also written to *recorder*.
    """

    def __init__(
        self,
        config: MxfrontConfig,
        display: Transcript,
        recorder: SessionRecorder,
        controller: ProcessController | None = None,
    ) -> None:
        self._config = config
        self._display = display
        self._recorder = recorder
        controller = controller or select_controller()

        self._process = EngineProcess(config.engine, controller, on_exit=self._on_process_exit)
        self._server = EngineServer(self._on_connection, on_disconnect=self._on_disconnect)
        self._segmenter = StreamSegmenter()
        self._state = SessionState()
        self._sender = CommandSender(
            recorder,
            display=self._show_echo,
            on_busy=self._on_busy,
            setup_commands=build_setup_commands(config.engine.mathml_library),
        )

        self._player: BatchPlayer | None = None
        self._echoed: int | None = None
        self._input_text: dict[int, str] = {}
        self._pending_open: tuple[str, str | None] | None = None
        self._startup_output = ""
        self._last_prompt = ""
        self._displaying_progress = False
        self._can_edit = False
        self._closing = False

        self._handlers: dict[type, Callable[[Any], None]] = {
            FirstPrompt: self._on_first_prompt,
            Prompt: self._on_prompt,
            MathBlock: self._on_math,
            PlainText: self._on_text,
            DiagnosticBanner: self._on_banner,
        }

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def port(self) -> int | None:
        return self._server.port

    @property
    def pid(self) -> int | None:
        return self._process.pid

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._sender.connected

    @property
    def alternate_mode(self) -> bool:
        return self._segmenter.alternate_mode

    @property
    def last_prompt(self) -> str:
        return self._last_prompt

    @property
    def displaying_progress(self) -> bool:
        return self._displaying_progress

    @property
    def can_edit(self) -> bool:
        """False while the engine is busy with a command."""
        return self._can_edit

    @property
    def can_interrupt(self) -> bool:
        return self._process.pid is not None

    @property
    def history(self) -> list[str]:
        return self._sender.history

    @property
    def batch_active(self) -> bool:
        return self._player is not None and self._player.active

    @property
    def process(self) -> EngineProcess:
        return self._process

    @property
    def server(self) -> EngineServer:
        return self._server

    @property
    def display(self) -> Transcript:
        return self._display

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> bool:
        """Open the server and launch the engine against it.

        Failures are reported through the display and the transcript;
        the session object stays usable (and disconnected).
        """
        engine = self._config.engine
        self._status(f"Starting server on port {engine.default_port}")
        try:
            port = await self._server.negotiate_port(engine.default_port, engine.max_port)
        except ServerUnavailableError as exc:
            self._status("Starting server failed")
            self._report_error(f"{exc}. Check engine.default_port in the configuration.", "server")
            return False

        self._status(f"Starting the engine on port {port}")
        try:
            await self._process.spawn(port)
        except SpawnError as exc:
            self._status("Starting the engine failed")
            self._report_error(
                f"{exc}\nCheck engine.executable in the configuration.", "spawn"
            )
            return False

        self._status("Engine started. Waiting for connection...")
        return True

    def mark_closing(self) -> None:
        """Suppress lost-connection and termination notices from now on."""
        self._closing = True

    async def close(self) -> None:
        """Kill the engine and tear down the socket."""
        self.mark_closing()
        if self._process.running or self.connected:
            self.kill()
        await self._process.shutdown()
        await self._server.close()

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    def send(
        self,
        text: str,
        echo: bool = True,
        silent: bool = True,
        soft_wrap: bool | None = None,
    ) -> PendingCommand | None:
        if soft_wrap is None:
            soft_wrap = self._config.session.soft_wrap
        self._echoed = None
        command = self._sender.send(text, echo=echo, silent=silent, soft_wrap=soft_wrap)
        if command is not None and self._echoed is not None:
            self._input_text[self._echoed] = command.text
        return command

    def submit(self, line: str) -> PendingCommand | None:
        """Send a line typed by the user, terminating it if needed."""
        text = line.strip()
        if not self.alternate_mode and not text.endswith((";", "$")):
            text += ";"
        return self.send(text)

    async def interrupt(self) -> bool:
        if not await self._process.interrupt():
            self._status("Interrupt unavailable: engine pid unknown")
            return False
        self._status("Interrupt sent")
        return True

    def kill(self) -> None:
        """Force-terminate the engine, or ask it to quit if the pid is unknown."""
        if self._process.kill():
            return
        quit_command = "($quit)" if self.alternate_mode else "quit();"
        if self.connected:
            self.send(quit_command, echo=False, silent=False)

    def dump_output(self) -> None:
        """Show whatever the engine wrote to stdout and stderr."""
        stdout, stderr = self._process.dump_output()
        self._show("text", f"Engine stdout:\n{stdout}" if stdout else "Engine stdout is empty")
        self._show("text", f"Engine stderr:\n{stderr}" if stderr else "Engine stderr is empty")

    def attach_recording(self, recording: BatchRecording) -> None:
        """Replay *recording*, starting at the next main prompt."""
        self._player = BatchPlayer(recording, display=self._show, send=self._send_recorded)
        self._state.batch_active = True

    def open_file(self, path: str, command: str | None = None) -> BatchRecording | None:
        """Open *path* in the engine.

        Before the first prompt the request is held and carried out once
        the engine is ready.  A structured recording opened in a running
        session is returned to the caller, which must restart the engine
        with it attached; in every other case None is returned.
        """
        if not self._state.ready:
            self._pending_open = (path, command)
            return None

        recording = _try_recording(path, command)
        if recording is not None:
            return recording
        self._send_open(path, command)
        return None

    def rerun(self, handle: int) -> PendingCommand | None:
        """Re-evaluate the input at *handle* in its original position.

        Its old output is removed and new output is inserted after its
        prompt; the next main prompt then updates the prompt at the end
        of the document instead of adding a new one.
        """
        item = self._display.get(handle)
        if item.kind != "input":
            msg = f"Display item {handle} is not an input"
            raise ValueError(msg)

        order = self._display.handles()
        pos = order.index(handle)
        end = pos + 1
        while end < len(order) and self._display.get(order[end]).kind not in ("main_prompt", "input"):
            end += 1

        anchor = order[pos - 1] if pos > 0 else None
        if anchor is None:
            msg = f"Input {handle} has nothing before it to anchor on"
            raise ValueError(msg)
        text = self._input_text.get(handle, item.text)
        for stale in order[pos:end]:
            self._display.remove(stale)
            self._input_text.pop(stale, None)
        if self._display.get(anchor).kind == "main_prompt" and self._last_prompt:
            self._display.replace(anchor, self._last_prompt)

        self._display.set_insert_point(anchor)
        self._state.enter_insert_replay()
        return self.send(text)

    # ------------------------------------------------------------------ #
    # Connection
    # ------------------------------------------------------------------ #

    async def _on_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self._sender.attach(writer)
        self._status("Client connected")
        if self._process.controller.banner_from_stdout:
            self._startup_output = self._process.drain_output()
        await self._read_loop(reader)

    async def _read_loop(self, reader: asyncio.StreamReader) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                data = await reader.read(_SOCKET_CHUNK)
                if not data:
                    break
                self.feed(decoder.decode(data))
        except asyncio.CancelledError:
            raise
        except (ConnectionResetError, BrokenPipeError, OSError) as exc:
            logger.warning("Engine connection error: %s", exc)

    def _on_disconnect(self) -> None:
        self._sender.detach()
        self._process.set_pid(None)
        self._can_edit = False
        if self._closing:
            return
        self._show("error", LOST_CONNECTION_MESSAGE)
        self._record_error("Lost socket connection", "connection")
        self._status("Not connected to the engine")

    def _on_process_exit(self, returncode: int | None) -> None:
        if self._closing:
            return
        _, stderr = self._process.dump_output()
        detail = f" (exit code {returncode})" if returncode is not None else ""
        preview = _output_tail(stderr)
        if preview:
            detail += f"\n  {preview}"
        self._status("Engine process terminated.")
        self._record_error(f"Engine process terminated{detail}", "process")

    # ------------------------------------------------------------------ #
    # Segment dispatch
    # ------------------------------------------------------------------ #

    def feed(self, text: str) -> None:
        """Process a decoded chunk of engine output."""
        if not self._displaying_progress and text != "\n":
            self._status("Reading engine output")
            self._displaying_progress = True
        for segment in self._segmenter.feed(text):
            self._dispatch(segment)

    def _dispatch(self, segment: OutputSegment) -> None:
        self._handlers[type(segment)](segment)

    def _on_first_prompt(self, segment: FirstPrompt) -> None:
        self._state.on_first_prompt()
        self._process.set_pid(segment.pid)
        if segment.pid is None:
            logger.warning("Engine did not announce its pid; interrupt is unavailable")

        banner = self._startup_output or segment.banner
        self._startup_output = ""
        self._first_output(banner)

        self._last_prompt = FIRST_PROMPT
        pending, self._pending_open = self._pending_open, None
        if pending is None:
            self._main_prompt(FIRST_PROMPT)
        else:
            self._open_pending(*pending)
        if self._can_edit:
            self._status("Ready for user input")

    def _on_prompt(self, prompt: Prompt) -> None:
        self._last_prompt = prompt.text
        self._state.on_prompt(prompt)
        if prompt.is_main:
            if self._state.insert_replay:
                self._finish_insert_replay(prompt.text)
            else:
                self._main_prompt(prompt.text)
        else:
            self._show("prompt", prompt.text)
            self._can_edit = True
        self._status("Ready for user input")

    def _on_math(self, segment: MathBlock) -> None:
        try:
            validate_markup(segment.markup)
        except MalformedSegmentError as exc:
            logger.warning("Dropping malformed math block: %s", exc)
            self._show("error", "Warning: could not parse engine output; it was dropped.")
            self._record_error(str(exc), "markup", log=False)
            return
        self._status("Parsing output")
        self._show("math", segment.markup)

    def _on_text(self, segment: PlainText) -> None:
        self._status("Parsing output")
        lines = segment.text.split("\n")
        self._show("text", "\n".join(line.expandtabs(8) for line in lines))

    def _on_banner(self, segment: DiagnosticBanner) -> None:
        self._state.on_banner()
        self._show("prompt", segment.text)
        self._can_edit = True
        self._status("Ready for user input")

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _first_output(self, banner: str) -> None:
        self._clear_display()
        if not self._config.engine.show_header:
            return
        start = banner.find("Maxima")
        body = banner[max(start, 0):]
        header = f"mxfront {__version__}"
        self._show("text", f"{header}\n{body}".rstrip())

    def _open_pending(self, path: str, command: str | None) -> None:
        # A recording replays from the first prompt; anything else is
        # sent after it so the input lands under that prompt.
        recording = _try_recording(path, command)
        if recording is not None:
            self.attach_recording(recording)
            self._main_prompt(FIRST_PROMPT)
        else:
            self._main_prompt(FIRST_PROMPT)
            self._send_open(path, command)

    def _send_open(self, path: str, command: str | None) -> None:
        text, echo = open_file_command(path, command)
        if command is None and Path(path).suffix.lower() == ".sav":
            self._clear_display()
        if self.send(text, echo=echo, silent=echo) is not None:
            self._can_edit = False

    def _clear_display(self) -> None:
        self._display.clear()
        self._input_text.clear()

    def _main_prompt(self, text: str) -> None:
        player = self._player
        sent = False
        if player is None:
            self._show("main_prompt", text)
        else:
            sent = player.advance(text)
            if not player.active:
                self._player = None
                self._state.batch_active = False
        self._can_edit = not sent

    def _finish_insert_replay(self, text: str) -> None:
        self._display.set_insert_point(None)
        last = self._display.last_handle("main_prompt")
        if last is None:
            self._show("main_prompt", text)
        else:
            self._display.replace(last, text)
        self._state.exit_insert_replay()
        self._can_edit = True

    def _send_recorded(self, text: str) -> None:
        self.send(text, echo=True, silent=True, soft_wrap=False)

    def _on_busy(self) -> None:
        self._can_edit = False
        self._status("Engine is calculating")

    def _show(self, kind: DisplayKind, text: str) -> int:
        handle = self._display.append(kind, text)
        self._displaying_progress = False
        self._recorder.record(OutputEvent(ts="", seq=0, kind=kind, text=text))
        return handle

    def _show_echo(self, kind: DisplayKind, text: str) -> int:
        handle = self._show(kind, text)
        if kind == "input":
            self._echoed = handle
        return handle

    def _status(self, text: str) -> None:
        self._display.status(text)
        self._recorder.record(StatusEvent(ts="", seq=0, status=text))

    def _report_error(self, message: str, context: str) -> None:
        self._show("error", message)
        self._record_error(message, context)

    def _record_error(self, message: str, context: str, log: bool = True) -> None:
        if log:
            logger.error("%s: %s", context, message)
        self._recorder.record(ErrorEvent(ts="", seq=0, error=message, context=context))


def _output_tail(text: str, max_lines: int = 5) -> str:
    """Last *max_lines* non-empty lines of captured output, indented for display."""
    lines = [line for line in text.split("\n") if line.strip()]
    return "\n  ".join(lines[-max_lines:])


def _try_recording(path: str, command: str | None) -> BatchRecording | None:
    if command is not None or not path.lower().endswith(".wxm"):
        return None
    try:
        return load_recording(Path(path))
    except BatchFormatError as exc:
        logger.info("Falling back to batch() for %s: %s", path, exc)
        return None
