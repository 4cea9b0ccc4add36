"""Transcript — flat, handle-addressed store of displayed items.

Items never point at each other.  Each one is addressed by a stable
integer handle and the display order is a separate list of handles, so
removing or re-valuing an item never leaves dangling references.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

DisplayKind = Literal[
    "main_prompt",
    "prompt",
    "input",
    "text",
    "math",
    "error",
    "comment",
    "section",
    "title",
]


@runtime_checkable
class DisplaySink(Protocol):
    """Anything that can show session output."""

    def append(self, kind: DisplayKind, text: str) -> int: ...

    def replace(self, handle: int, text: str) -> None: ...

    def status(self, text: str) -> None: ...

    def clear(self) -> None: ...


@dataclass
class DisplayItem:
    """One displayed unit."""

    kind: DisplayKind
    text: str


class Transcript:
    """In-memory document of everything shown during a session.

    New items go to the end unless an insert point is set, in which case
    they are placed right after it and the insert point moves along, so
    a run of appends stays in order.
    """

    def __init__(self) -> None:
        self._items: dict[int, DisplayItem] = {}
        self._order: list[int] = []
        self._next_handle = 0
        self._insert_point: int | None = None
        self.last_status = ""

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        return len(self._order)

    def get(self, handle: int) -> DisplayItem:
        """Return the item for *handle*; raises ``KeyError`` if unknown."""
        return self._items[handle]

    def handles(self) -> list[int]:
        """Handles in display order."""
        return list(self._order)

    def items(self) -> list[tuple[int, DisplayItem]]:
        """``(handle, item)`` pairs in display order."""
        return [(h, self._items[h]) for h in self._order]

    def last_handle(self, kind: DisplayKind) -> int | None:
        """Handle of the last item of *kind* in display order."""
        for handle in reversed(self._order):
            if self._items[handle].kind == kind:
                return handle
        return None

    @property
    def insert_point(self) -> int | None:
        return self._insert_point

    # ------------------------------------------------------------------ #
    # Mutation
    # ------------------------------------------------------------------ #

    def append(self, kind: DisplayKind, text: str) -> int:
        """Add an item and return its handle."""
        handle = self._next_handle
        self._next_handle += 1
        self._items[handle] = DisplayItem(kind=kind, text=text)
        if self._insert_point is None:
            self._order.append(handle)
        else:
            pos = self._order.index(self._insert_point) + 1
            self._order.insert(pos, handle)
            self._insert_point = handle
        return handle

    def replace(self, handle: int, text: str) -> None:
        """Change the text of an existing item in place."""
        self._items[handle].text = text

    def remove(self, handle: int) -> None:
        """Delete an item.  The insert point may not be removed."""
        if handle == self._insert_point:
            msg = f"Cannot remove the insert point (handle {handle})"
            raise ValueError(msg)
        self._order.remove(handle)
        del self._items[handle]

    def set_insert_point(self, handle: int | None) -> None:
        """Insert subsequent items after *handle* (``None`` appends at the end)."""
        if handle is not None and handle not in self._items:
            msg = f"Unknown display handle {handle}"
            raise KeyError(msg)
        self._insert_point = handle

    def status(self, text: str) -> None:
        self.last_status = text

    def clear(self) -> None:
        """Remove every item.  Handles are never reused."""
        self._items.clear()
        self._order.clear()
        self._insert_point = None
