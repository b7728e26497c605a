"""
Filtered selection over a fixed list of candidates.

The filtered view stores indices into the original list, never copies of the
strings, so the command picker and the history browser share the same logic.
"""

from typing import Callable, List, Optional, Sequence


class Selector:
    """Filter text, filtered index view, cursor and scroll window"""

    def __init__(
        self,
        items: Sequence[str],
        display: Optional[Callable[[int], str]] = None,
        window: int = 1,
    ):
        self.items = list(items)
        self.display = display or (lambda i: self.items[i])
        self.filter_text = ""
        self.filtered: List[int] = list(range(len(self.items)))
        self.cursor = 0
        self.scroll_offset = 0
        self.window = max(window, 1)

    def __len__(self) -> int:
        return len(self.filtered)

    def set_filter(self, text: str) -> bool:
        """Recompute the view for new filter text; returns False if unchanged"""
        if text == self.filter_text:
            return False
        self.filter_text = text
        needle = text.lower()
        self.filtered = [
            i for i in range(len(self.items))
            if needle in self.display(i).lower()
        ]
        self.cursor = 0
        self.scroll_offset = 0
        return True

    def move(self, delta: int) -> None:
        """Move the cursor, clamped to the filtered list"""
        if not self.filtered:
            return
        self.cursor = min(max(self.cursor + delta, 0), len(self.filtered) - 1)
        self._follow_cursor()

    def set_window(self, window: int) -> None:
        self.window = max(window, 1)
        self._follow_cursor()

    def _follow_cursor(self) -> None:
        # Scroll by exactly the overflow, never a page at a time
        if self.cursor < self.scroll_offset:
            self.scroll_offset = self.cursor
        elif self.cursor >= self.scroll_offset + self.window:
            self.scroll_offset = self.cursor - self.window + 1

    def current(self) -> Optional[int]:
        """Index into ``items`` of the highlighted entry"""
        if not self.filtered:
            return None
        return self.filtered[self.cursor]

    def visible(self) -> List[int]:
        """Positions in the filtered view that fit in the window"""
        end = min(self.scroll_offset + self.window, len(self.filtered))
        return list(range(self.scroll_offset, end))

    def label(self, position: int) -> str:
        """Display text for a position in the filtered view"""
        return self.display(self.filtered[position])
