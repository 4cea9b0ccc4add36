"""Tests for session phase tracking."""

from __future__ import annotations

import pytest

from mxfront.protocol.segments import Prompt
from mxfront.session.state import InvalidTransitionError, SessionPhase, SessionState


class TestFirstPrompt:
    def test_starts_waiting(self) -> None:
        state = SessionState()
        assert state.phase is SessionPhase.AWAITING_FIRST_PROMPT
        assert state.ready is False

    def test_first_prompt_makes_ready(self) -> None:
        state = SessionState()
        state.on_first_prompt()
        assert state.phase is SessionPhase.READY
        assert state.ready is True

    def test_first_prompt_twice_rejected(self) -> None:
        state = SessionState()
        state.on_first_prompt()
        with pytest.raises(InvalidTransitionError, match="twice"):
            state.on_first_prompt()


class TestPrompts:
    def test_prompt_before_first_prompt_rejected(self) -> None:
        state = SessionState()
        with pytest.raises(InvalidTransitionError, match="before the first prompt"):
            state.on_prompt(Prompt(text="(%i2) ", is_main=True))

    def test_alternate_prompt(self) -> None:
        state = SessionState()
        state.on_first_prompt()
        state.on_prompt(Prompt(text="dbm:1> ", is_main=False, alternate=True))
        assert state.phase is SessionPhase.ALTERNATE

    def test_main_prompt_returns_to_ready(self) -> None:
        state = SessionState()
        state.on_first_prompt()
        state.on_prompt(Prompt(text="dbm:1> ", is_main=False, alternate=True))
        state.on_prompt(Prompt(text="(%i3) ", is_main=True))
        assert state.phase is SessionPhase.READY


class TestBanner:
    def test_banner_enters_alternate(self) -> None:
        state = SessionState()
        state.on_first_prompt()
        state.on_banner()
        assert state.phase is SessionPhase.ALTERNATE

    def test_banner_ignored_before_first_prompt(self) -> None:
        state = SessionState()
        state.on_banner()
        assert state.phase is SessionPhase.AWAITING_FIRST_PROMPT


class TestSubStates:
    def test_insert_replay_toggle(self) -> None:
        state = SessionState()
        state.enter_insert_replay()
        assert state.insert_replay is True
        state.exit_insert_replay()
        assert state.insert_replay is False

    def test_batch_flag_defaults_off(self) -> None:
        assert SessionState().batch_active is False
