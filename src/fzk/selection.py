"""Scroll and pointer state over a candidate list of changing size."""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class Intent(Enum):
    """Discrete input intents produced by the UI."""

    MOVE_UP = "move_up"
    MOVE_DOWN = "move_down"
    RESET_SCROLL = "reset_scroll"
    QUERY_CHANGED = "query_changed"
    KILL_SELECTED = "kill_selected"
    CLEAR_QUERY = "clear_query"
    QUIT = "quit"


@dataclass(slots=True, frozen=True)
class ViewWindow(Generic[T]):
    """The slice of the candidate list a render pass should draw."""

    rows: tuple[T, ...]
    pointer: int | None  # index into rows, None when nothing is selected
    scroll_offset: int
    total_count: int


class SelectionController:
    """
    Tracks ``(scroll_offset, pointer)`` over a list of ``total_count`` rows
    shown ``viewport_capacity`` at a time.

    Whenever the list is non-empty the pointer stays within the visible rows
    and the scroll offset never runs past the last full page, so
    ``scroll_offset + pointer`` is always a valid row index. Both are zero
    when the list is empty.
    """

    def __init__(self) -> None:
        self._scroll_offset = 0
        self._pointer = 0
        self._total_count = 0
        self._capacity = 0
        self._query = ""

    @property
    def scroll_offset(self) -> int:
        return self._scroll_offset

    @property
    def pointer(self) -> int:
        return self._pointer

    @property
    def total_count(self) -> int:
        return self._total_count

    @property
    def viewport_capacity(self) -> int:
        return self._capacity

    @property
    def visible_count(self) -> int:
        """Rows actually drawn in the viewport."""
        return max(0, min(self._capacity, self._total_count - self._scroll_offset))

    @property
    def selected_index(self) -> int | None:
        """Absolute index of the selected row, or None if there is none."""
        if self.visible_count == 0:
            return None
        return self._scroll_offset + self._pointer

    def update_bounds(self, total_count: int, viewport_capacity: int) -> None:
        """Take this tick's list size and viewport height and re-clamp."""
        self._total_count = max(0, total_count)
        self._capacity = max(0, viewport_capacity)
        self._clamp()

    def apply(self, intent: Intent) -> None:
        """Apply a movement or reset intent. Other intents are ignored here."""
        if intent is Intent.MOVE_DOWN:
            self.move_down()
        elif intent is Intent.MOVE_UP:
            self.move_up()
        elif intent in (Intent.RESET_SCROLL, Intent.QUERY_CHANGED):
            self.reset()

    def move_down(self) -> None:
        if self._pointer < self.visible_count - 1:
            self._pointer += 1
        elif self._scroll_offset + self._capacity < self._total_count:
            # Scroll the list under an anchored pointer
            self._scroll_offset += 1
        self._clamp()

    def move_up(self) -> None:
        if self._scroll_offset > 0:
            self._scroll_offset -= 1
        elif self._pointer > 0:
            self._pointer -= 1

    def reset(self) -> None:
        self._scroll_offset = 0
        self._pointer = 0

    def query_changed(self, query: str) -> bool:
        """Reset if ``query`` differs from the last one seen. Returns True on reset."""
        if query == self._query:
            return False
        self._query = query
        self.reset()
        return True

    def window(self, records: Sequence[T]) -> ViewWindow[T]:
        """
        Cut the visible slice out of ``records``.

        ``records`` should be the list whose length was last passed to
        ``update_bounds``; if it differs, bounds are taken from it.
        """
        if len(records) != self._total_count:
            self.update_bounds(len(records), self._capacity)
        start = self._scroll_offset
        rows = tuple(records[start : start + self.visible_count])
        return ViewWindow(
            rows=rows,
            pointer=self._pointer if rows else None,
            scroll_offset=self._scroll_offset,
            total_count=self._total_count,
        )

    def _clamp(self) -> None:
        if self._total_count == 0 or self._capacity == 0:
            self._scroll_offset = 0
            self._pointer = 0
            return

        max_offset = max(0, self._total_count - self._capacity)
        self._scroll_offset = min(max(0, self._scroll_offset), max_offset)
        self._pointer = min(max(0, self._pointer), self.visible_count - 1)
