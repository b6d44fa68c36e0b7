"""Document buffer interface consumed by the upload coordinator.

The coordinator never renders text or manages the caret itself; it talks to
the editor through this small interface:
    - read access to the current text and caret position
    - insert_text: insert at the caret (replacing any selection)
    - replace_text: replace the first occurrence of a span, no-op when absent
    - select / apply_surround: wrap a selected region with a pair of markers

TextBuffer is an in-memory implementation used by the web host and tests.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class DocumentBuffer(ABC):
    """Abstract editor buffer."""

    @property
    @abstractmethod
    def text(self) -> str:
        """Current document text."""

    @property
    @abstractmethod
    def selection_start(self) -> int:
        """Caret position (start of the selection)."""

    @abstractmethod
    def select(self, start: int, end: int) -> None:
        """Move the selection to [start, end)."""

    @abstractmethod
    def insert_text(self, text: str) -> None:
        """Insert text at the caret, replacing the current selection."""

    @abstractmethod
    def replace_text(self, old: str, new: str) -> bool:
        """Replace the first occurrence of *old* with *new*.

        Returns:
            True if *old* was found and replaced, False otherwise.
        """

    @abstractmethod
    def apply_surround(
        self,
        before: str,
        after: str,
        preset_name: str,
        options: Optional[dict] = None,
    ) -> None:
        """Wrap the current selection with *before* and *after*."""

    def caret_on_empty_line(self) -> bool:
        """True when the caret sits at the start of an empty line."""
        start = self.selection_start
        return start == 0 or self.text[start - 1] == "\n"


class TextBuffer(DocumentBuffer):
    """Plain in-memory buffer with a single selection."""

    def __init__(self, text: str = "", caret: Optional[int] = None) -> None:
        self._text = text
        position = len(text) if caret is None else max(0, min(caret, len(text)))
        self._start = position
        self._end = position

    @property
    def text(self) -> str:
        return self._text

    @property
    def selection_start(self) -> int:
        return self._start

    @property
    def selection_end(self) -> int:
        return self._end

    @property
    def selected_text(self) -> str:
        return self._text[self._start:self._end]

    def select(self, start: int, end: int) -> None:
        length = len(self._text)
        self._start = max(0, min(start, length))
        self._end = max(self._start, min(end, length))

    def insert_text(self, text: str) -> None:
        self._text = self._text[:self._start] + text + self._text[self._end:]
        self._start = self._end = self._start + len(text)

    def replace_text(self, old: str, new: str) -> bool:
        if not old:
            return False
        index = self._text.find(old)
        if index == -1:
            return False

        old_end = index + len(old)
        delta = len(new) - len(old)
        self._text = self._text[:index] + new + self._text[old_end:]
        self._start = self._shift(self._start, index, old_end, len(new), delta)
        self._end = self._shift(self._end, index, old_end, len(new), delta)
        return True

    @staticmethod
    def _shift(position: int, index: int, old_end: int, new_len: int, delta: int) -> int:
        if position >= old_end:
            return position + delta
        if position > index:
            return index + new_len
        return position

    def apply_surround(
        self,
        before: str,
        after: str,
        preset_name: str,
        options: Optional[dict] = None,
    ) -> None:
        options = options or {}
        selected = self.selected_text
        if options.get("use_block_mode"):
            prefix = "" if self._start == 0 or self._text[self._start - 1] == "\n" else "\n"
            wrapped = f"{prefix}{before}\n{selected}\n{after}"
        else:
            wrapped = f"{before}{selected}{after}"

        logger.debug(f"Applying surround preset {preset_name} over {len(selected)} chars")
        self._text = self._text[:self._start] + wrapped + self._text[self._end:]
        self._start = self._end = self._start + len(wrapped)

    def __repr__(self) -> str:
        return f"TextBuffer(len={len(self._text)}, selection=({self._start}, {self._end}))"
