"""Session phase tracking."""

from __future__ import annotations

import enum
import logging

from mxfront.protocol.segments import Prompt

logger = logging.getLogger(__name__)


class SessionPhase(enum.Enum):
    AWAITING_FIRST_PROMPT = "awaiting_first_prompt"
    READY = "ready"
    ALTERNATE = "alternate"


class InvalidTransitionError(Exception):
    """A segment arrived that the current phase cannot accept."""


class SessionState:
    """Phase of the conversation with the engine plus two sub-states.

    ``insert_replay`` is set while a re-evaluated input waits for its
    main prompt; ``batch_active`` while a structured recording is being
    replayed.
    """

    def __init__(self) -> None:
        self.phase = SessionPhase.AWAITING_FIRST_PROMPT
        self.insert_replay = False
        self.batch_active = False

    @property
    def ready(self) -> bool:
        return self.phase is not SessionPhase.AWAITING_FIRST_PROMPT

    def on_first_prompt(self) -> None:
        if self.phase is not SessionPhase.AWAITING_FIRST_PROMPT:
            msg = "First prompt received twice"
            raise InvalidTransitionError(msg)
        self.phase = SessionPhase.READY

    def on_prompt(self, prompt: Prompt) -> None:
        if not self.ready:
            msg = f"Prompt {prompt.text!r} received before the first prompt"
            raise InvalidTransitionError(msg)
        self._move(SessionPhase.ALTERNATE if prompt.alternate else SessionPhase.READY)

    def on_banner(self) -> None:
        if self.ready:
            self._move(SessionPhase.ALTERNATE)

    def enter_insert_replay(self) -> None:
        self.insert_replay = True

    def exit_insert_replay(self) -> None:
        self.insert_replay = False

    def _move(self, phase: SessionPhase) -> None:
        if phase is not self.phase:
            logger.debug("Session phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase
