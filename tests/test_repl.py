"""Tests for the ``mxfront up`` REPL — command parsing, submission and restarts."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

from mxfront.batch.recording import BatchRecording
from mxfront.commands.up import Frontend, _handle_command, _repl_loop
from mxfront.config.models import MxfrontConfig
from mxfront.display.console import ConsoleSink
from mxfront.display.document import Transcript
from mxfront.session.recorder import SessionRecorder

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _make_frontend(display: Transcript | None = None) -> MagicMock:
    frontend = MagicMock()
    frontend.display = display or Transcript()
    frontend.restart = AsyncMock(return_value=True)
    session = frontend.session
    session.interrupt = AsyncMock(return_value=True)
    session.open_file.return_value = None
    session.history = []
    session.connected = True
    session.can_edit = True
    session.can_interrupt = True
    return frontend


def _make_session_class() -> MagicMock:
    """Stand-in for EngineSession that hands out fresh mock instances."""

    def _new(*args: Any, **kwargs: Any) -> MagicMock:
        session = MagicMock()
        session.start = AsyncMock(return_value=True)
        session.close = AsyncMock()
        return session

    return MagicMock(side_effect=_new)


# ================================================================== #
# Slash commands
# ================================================================== #


class TestHandleCommand:
    async def test_quit(self) -> None:
        assert await _handle_command("/quit", _make_frontend()) is True

    async def test_help(self, capsys: Any) -> None:
        assert await _handle_command("/help", _make_frontend()) is False
        out = capsys.readouterr().out
        assert "/rerun N" in out
        assert "/restart" in out

    async def test_command_is_case_insensitive(self) -> None:
        assert await _handle_command("/QUIT", _make_frontend()) is True

    async def test_interrupt(self) -> None:
        frontend = _make_frontend()
        await _handle_command("/interrupt", frontend)
        frontend.session.interrupt.assert_awaited_once()

    async def test_interrupt_unavailable(self, capsys: Any) -> None:
        frontend = _make_frontend()
        frontend.session.interrupt.return_value = False
        await _handle_command("/interrupt", frontend)
        assert "Interrupt unavailable" in capsys.readouterr().out

    async def test_interrupt_disabled_without_pid(self, capsys: Any) -> None:
        frontend = _make_frontend()
        frontend.session.can_interrupt = False
        await _handle_command("/interrupt", frontend)
        assert "Interrupt unavailable" in capsys.readouterr().out
        frontend.session.interrupt.assert_not_called()

    async def test_restart(self) -> None:
        frontend = _make_frontend()
        await _handle_command("/restart", frontend)
        frontend.restart.assert_awaited_once_with()

    async def test_reset(self) -> None:
        frontend = _make_frontend()
        await _handle_command("/reset", frontend)
        frontend.session.send.assert_called_once_with("kill(all);")

    async def test_dump(self) -> None:
        frontend = _make_frontend()
        await _handle_command("/dump", frontend)
        frontend.session.dump_output.assert_called_once()

    async def test_unknown(self, capsys: Any) -> None:
        assert await _handle_command("/frobnicate", _make_frontend()) is False
        assert "Unknown command: /frobnicate" in capsys.readouterr().out


class TestFileCommands:
    async def test_open_requires_argument(self, capsys: Any) -> None:
        frontend = _make_frontend()
        await _handle_command("/open", frontend)
        assert "Usage: /open FILE" in capsys.readouterr().out
        frontend.session.open_file.assert_not_called()

    async def test_open_plain_file(self) -> None:
        frontend = _make_frontend()
        await _handle_command("/open /work/pkg.mac", frontend)
        frontend.session.open_file.assert_called_once_with("/work/pkg.mac")
        frontend.restart.assert_not_called()

    async def test_open_recording_restarts_engine(self) -> None:
        frontend = _make_frontend()
        recording = BatchRecording(lines=["/* [wxMaxima batch file version 1] */"])
        frontend.session.open_file.return_value = recording

        await _handle_command("/open /work/calc.wxm", frontend)

        frontend.restart.assert_awaited_once_with(recording)

    async def test_load_and_batch_pass_command(self) -> None:
        frontend = _make_frontend()
        await _handle_command("/load draw", frontend)
        await _handle_command("/batch /work/run.mac", frontend)
        assert [c.args for c in frontend.session.open_file.call_args_list] == [
            ("draw", "load"),
            ("/work/run.mac", "batch"),
        ]


class TestHistory:
    async def test_empty(self, capsys: Any) -> None:
        await _handle_command("/history", _make_frontend())
        assert "No commands sent yet." in capsys.readouterr().out

    async def test_numbered(self, capsys: Any) -> None:
        frontend = _make_frontend()
        frontend.session.history = ["a: 1;", "b: 2;"]
        await _handle_command("/history", frontend)
        out = capsys.readouterr().out
        assert "1  a: 1;" in out
        assert "2  b: 2;" in out


class TestRerun:
    def _display(self) -> Transcript:
        display = Transcript()
        display.append("main_prompt", "(%i1) ")
        display.append("input", "a;")
        display.append("main_prompt", "(%i2) ")
        display.append("input", "b;")
        return display

    async def test_reruns_nth_input(self) -> None:
        display = self._display()
        frontend = _make_frontend(display)
        await _handle_command("/rerun 2", frontend)
        frontend.session.rerun.assert_called_once_with(display.handles()[3])

    async def test_out_of_range(self, capsys: Any) -> None:
        frontend = _make_frontend(self._display())
        await _handle_command("/rerun 3", frontend)
        assert "No input 3" in capsys.readouterr().out
        frontend.session.rerun.assert_not_called()

    async def test_not_a_number(self, capsys: Any) -> None:
        frontend = _make_frontend(self._display())
        await _handle_command("/rerun x", frontend)
        assert "Usage: /rerun N" in capsys.readouterr().out

    async def test_busy_engine(self, capsys: Any) -> None:
        frontend = _make_frontend(self._display())
        frontend.session.can_edit = False
        await _handle_command("/rerun 1", frontend)
        assert "busy" in capsys.readouterr().err
        frontend.session.rerun.assert_not_called()

    async def test_rerun_error_reported(self, capsys: Any) -> None:
        frontend = _make_frontend(self._display())
        frontend.session.rerun.side_effect = ValueError("nothing to anchor on")
        await _handle_command("/rerun 1", frontend)
        assert "Cannot re-evaluate input 1" in capsys.readouterr().err


# ================================================================== #
# REPL loop
# ================================================================== #


class TestReplLoop:
    async def test_plain_lines_are_submitted(self) -> None:
        frontend = _make_frontend()
        inputs = ["x+1", "/* a comment */", "/quit"]
        with patch("mxfront.commands.up._read_input", side_effect=inputs):
            await _repl_loop(frontend, asyncio.Event())

        submitted = [c.args[0] for c in frontend.session.submit.call_args_list]
        assert submitted == ["x+1", "/* a comment */"]

    async def test_blank_lines_are_skipped(self) -> None:
        frontend = _make_frontend()
        with patch("mxfront.commands.up._read_input", side_effect=["   ", "/quit"]):
            await _repl_loop(frontend, asyncio.Event())
        frontend.session.submit.assert_not_called()

    async def test_busy_engine_rejects_input(self, capsys: Any) -> None:
        frontend = _make_frontend()
        frontend.session.can_edit = False
        with patch("mxfront.commands.up._read_input", side_effect=["x", "/quit"]):
            await _repl_loop(frontend, asyncio.Event())

        frontend.session.submit.assert_not_called()
        assert "busy" in capsys.readouterr().err

    async def test_disconnected_session_still_receives_input(self) -> None:
        frontend = _make_frontend()
        frontend.session.connected = False
        frontend.session.can_edit = False
        with patch("mxfront.commands.up._read_input", side_effect=["x", "/quit"]):
            await _repl_loop(frontend, asyncio.Event())
        # The session reports "not connected" itself.
        frontend.session.submit.assert_called_once_with("x")


# ================================================================== #
# Frontend
# ================================================================== #


class TestFrontend:
    def _make(self, tmp_path: Path) -> tuple[Frontend, SessionRecorder]:
        recorder = SessionRecorder("maxima", transcripts_dir=tmp_path)
        frontend = Frontend(MxfrontConfig(version="1"), ConsoleSink(), recorder)
        return frontend, recorder

    async def test_start_queues_file(self, tmp_path: Path) -> None:
        with patch("mxfront.commands.up.EngineSession", _make_session_class()):
            frontend, recorder = self._make(tmp_path)
            assert await frontend.start("/work/pkg.mac") is True

        frontend.session.open_file.assert_called_once_with("/work/pkg.mac")
        frontend.session.start.assert_awaited_once()
        recorder.close()

    async def test_restart_builds_fresh_session(self, tmp_path: Path) -> None:
        with patch("mxfront.commands.up.EngineSession", _make_session_class()):
            frontend, recorder = self._make(tmp_path)
            old = frontend.session
            recording = BatchRecording(lines=["x"])

            await frontend.restart(recording)

        old.close.assert_awaited_once()
        assert frontend.session is not old
        assert frontend.restarts == 1
        frontend.session.attach_recording.assert_called_once_with(recording)
        frontend.session.start.assert_awaited_once()
        recorder.close()

    async def test_restart_without_recording(self, tmp_path: Path) -> None:
        with patch("mxfront.commands.up.EngineSession", _make_session_class()):
            frontend, recorder = self._make(tmp_path)
            await frontend.restart()

        frontend.session.attach_recording.assert_not_called()
        recorder.close()

    async def test_interrupt_delegates(self, tmp_path: Path) -> None:
        with patch("mxfront.commands.up.EngineSession", _make_session_class()):
            frontend, recorder = self._make(tmp_path)
        frontend.session.interrupt = AsyncMock(return_value=True)
        await frontend.interrupt()
        frontend.session.interrupt.assert_awaited_once()
        recorder.close()
