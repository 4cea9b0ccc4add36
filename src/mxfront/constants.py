"""Wire-protocol markers and shared constants for the mxfront runtime."""

from __future__ import annotations

#: Emitted by the engine before every prompt (installed at setup).
PROMPT_PREFIX = "<PROMPT-P/>"

#: Emitted by the engine after every prompt (installed at setup).
PROMPT_SUFFIX = "<PROMPT-S/>"

#: Literal opening of a math-markup block (attributes may follow).
MATH_OPEN = "<mth"

#: Literal closing of a math-markup block.
MATH_CLOSE = "</mth>"

#: The engine's very first prompt, seen before any markers are installed.
FIRST_PROMPT = "(%i1) "

#: Every main (evaluation) prompt starts with this.
MAIN_PROMPT_PREFIX = "(%i"

#: Prompt label of the Lisp sub-interpreter.
ALTERNATE_PROMPT_LABEL = "MAXIMA> "

#: Banner printed by GCL when the engine drops into its Lisp debugger.
ALTERNATE_BANNER = "dbl:MAXIMA>>"

#: Prompt shown in front of display-only regions (comments, sections, titles).
COMMENT_PROMPT = "/*"

#: Multi-line command marker and the line separator used inside it.
MULTILINE_MARKER = "<ml>"
MULTILINE_NEWLINE = "<nl>"

#: Port the front-end listens on first; the negotiation walks upwards.
DEFAULT_PORT = 4010

#: Highest port the negotiation will try.
MAX_PORT = 5000

#: Column after which long echoed input is soft-wrapped.
WRAP_COLUMN = 80
