"""Stream segmenter — reassembles chunked engine output into segments.

Engine output arrives in arbitrarily sized chunks.  The segmenter keeps
everything it has not yet classified in a single pending buffer and, on
every ``feed()``, extracts complete units until no complete marker is
left.  A marker split across two chunks is simply not found yet and is
picked up by the next ``feed()``; trailing partial text is never dropped.
"""

from __future__ import annotations

import logging
import re

from mxfront.constants import (
    ALTERNATE_BANNER,
    ALTERNATE_PROMPT_LABEL,
    FIRST_PROMPT,
    MAIN_PROMPT_PREFIX,
    MATH_CLOSE,
    MATH_OPEN,
    PROMPT_PREFIX,
    PROMPT_SUFFIX,
)
from mxfront.protocol.segments import (
    DiagnosticBanner,
    FirstPrompt,
    MathBlock,
    OutputSegment,
    PlainText,
    Prompt,
)

logger = logging.getLogger(__name__)

_PID_RE = re.compile(r"pid=(\d+)\r?\n")


def parse_pid(text: str) -> int | None:
    """Extract the process id from a ``pid=<digits>`` announcement."""
    match = _PID_RE.search(text)
    if match is None:
        return None
    pid = int(match.group(1))
    return pid if pid > 0 else None


def classify_prompt(content: str) -> Prompt | None:
    """Classify the text found between the prompt prefix and suffix.

    Returns ``None`` for blank prompts, which are never surfaced.
    """
    if not content.strip():
        return None
    if content.startswith(MAIN_PROMPT_PREFIX):
        return Prompt(text=content, is_main=True)
    body = content.lstrip("\n")
    if body.startswith(ALTERNATE_PROMPT_LABEL):
        return Prompt(
            text=body[len(ALTERNATE_PROMPT_LABEL):],
            is_main=False,
            alternate=True,
        )
    return Prompt(text=content, is_main=False)


def split_markup(text: str) -> list[OutputSegment]:
    """Split *text* into plain-text and math-block segments.

    Blank plain-text stretches are dropped.  A math block whose closing
    marker is missing runs to the end of *text*.
    """
    segments: list[OutputSegment] = []
    while text:
        start = text.find(MATH_OPEN)
        if start == -1:
            if text.strip():
                segments.append(PlainText(text))
            break
        before = text[:start]
        if before.strip():
            segments.append(PlainText(before))
        end = text.find(MATH_CLOSE, start)
        end = len(text) if end == -1 else end + len(MATH_CLOSE)
        segments.append(MathBlock(text[start:end]))
        text = text[end:]
    return segments


class StreamSegmenter:
    """Incremental marker scanner over the engine's output stream.

    Not thread-safe: ``feed()`` must only be called from the single
    control thread, and never re-entered.
    """

    def __init__(self) -> None:
        self._pending = ""
        self._reading_prompt = False
        self._first_seen = False
        self.alternate_mode = False

    # ------------------------------------------------------------------ #
    # Public properties
    # ------------------------------------------------------------------ #

    @property
    def pending(self) -> str:
        """Output received but not yet classified."""
        return self._pending

    @property
    def first_prompt_seen(self) -> bool:
        """Whether the one-time first prompt has been consumed."""
        return self._first_seen

    @property
    def awaiting_math_close(self) -> bool:
        """A math block has opened but its closing marker has not arrived."""
        start = self._pending.find(MATH_OPEN)
        return start != -1 and self._pending.find(MATH_CLOSE, start) == -1

    # ------------------------------------------------------------------ #
    # Segmentation
    # ------------------------------------------------------------------ #

    def feed(self, chunk: str) -> list[OutputSegment]:
        """Append *chunk* and return every segment that is now complete."""
        self._pending += chunk
        segments: list[OutputSegment] = []
        while self._extract(segments):
            pass
        return segments

    def _extract(self, out: list[OutputSegment]) -> bool:
        """Extract one unit from the head of the buffer.

        Returns ``True`` if something was consumed.
        """
        if not self._first_seen:
            return self._extract_first_prompt(out)

        # Earliest complete marker wins; ties cannot happen because the
        # markers never overlap.
        candidates: list[tuple[int, str]] = []
        suffix = self._pending.find(PROMPT_SUFFIX)
        if suffix != -1:
            candidates.append((suffix, PROMPT_SUFFIX))
        banner = self._pending.find(ALTERNATE_BANNER)
        if banner != -1:
            candidates.append((banner, ALTERNATE_BANNER))
        if not self._reading_prompt:
            prefix = self._pending.find(PROMPT_PREFIX)
            if prefix != -1:
                candidates.append((prefix, PROMPT_PREFIX))
            close = self._pending.find(MATH_CLOSE)
            if close != -1:
                candidates.append((close, MATH_CLOSE))

        if not candidates:
            return False

        pos, marker = min(candidates)
        head = self._pending[:pos]
        tail = self._pending[pos + len(marker):]

        if marker == PROMPT_PREFIX:
            out.extend(split_markup(head))
            self._reading_prompt = True
        elif marker == MATH_CLOSE:
            out.extend(split_markup(head + MATH_CLOSE))
        elif marker == PROMPT_SUFFIX:
            self._reading_prompt = False
            prompt = classify_prompt(head)
            if prompt is not None:
                self.alternate_mode = prompt.alternate
                out.append(prompt)
            else:
                logger.debug("Discarding blank prompt %r", head)
        else:
            out.extend(split_markup(head))
            out.append(DiagnosticBanner(ALTERNATE_BANNER))
            self._reading_prompt = False
            self.alternate_mode = True

        self._pending = tail
        return True

    def _extract_first_prompt(self, out: list[OutputSegment]) -> bool:
        pos = self._pending.find(FIRST_PROMPT)
        if pos == -1:
            return False
        banner = self._pending[:pos]
        self._first_seen = True
        self._reading_prompt = False
        self.alternate_mode = False
        self._pending = self._pending[pos + len(FIRST_PROMPT):]
        out.append(FirstPrompt(banner=banner, pid=parse_pid(banner)))
        return True
