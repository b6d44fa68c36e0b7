"""Placeholder text synchronizer.

Keeps one placeholder span per in-flight upload in the document buffer and
tracks which literal text is currently live for each file id:

    insert         -> "[Uploading: name…]()"
    mark_processing-> "[Processing: name…]()"    (a preprocessing stage is busy)
    restore        -> "[Uploading: name…]()"     (stage finished, transfer next)
    replace_with   -> final markup               (upload succeeded)
    remove         -> ""                         (cancelled or failed)

Every replace targets the entry's *current* text. When that text is no longer
in the buffer (the user edited it) the replace is a silent no-op; a span that
cannot be located is never re-inserted.
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from .buffer import DocumentBuffer
from .locator import SpanLocator

logger = logging.getLogger(__name__)

ZERO_WIDTH_PATTERN = re.compile("[\u200b-\u200d\ufeff]")


@dataclass
class PlaceholderEntry:
    """Placeholder state for one file.

    Attributes:
        file_id: ID of the upload this span stands for.
        file_name: Original filename.
        label: Filename label shown in the spans, including any order suffix.
        uploading: Full uploading span, including surrounding line breaks.
        processing: Processing span once a stage reported progress.
        current: The text currently live in the buffer.
    """
    file_id: str
    file_name: str
    label: str
    uploading: str
    processing: Optional[str] = None
    current: Optional[str] = None

    @property
    def is_processing(self) -> bool:
        return self.current is not None and self.current == self.processing


class PlaceholderSynchronizer:
    """Maps upload ids to the spans they own in a document buffer."""

    def __init__(
        self,
        buffer: DocumentBuffer,
        locator: SpanLocator,
        *,
        enabled: bool = True,
        clipboard_label: str = "image",
    ) -> None:
        self.buffer = buffer
        self.locator = locator
        self.enabled = enabled
        self.clipboard_label = clipboard_label
        self._entries: Dict[str, PlaceholderEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, file_id: str) -> bool:
        return file_id in self._entries

    def __iter__(self) -> Iterator[PlaceholderEntry]:
        return iter(list(self._entries.values()))

    def get(self, file_id: str) -> Optional[PlaceholderEntry]:
        return self._entries.get(file_id)

    # =========================================================================
    # Span construction
    # =========================================================================

    def label_for(self, file_name: str) -> str:
        """Filename label, with an order suffix when the name is already uploading.

        Adding two files called test.png yields "test.png" then "test.png(1)".
        """
        name = ZERO_WIDTH_PATTERN.sub("", file_name or "")
        if not name:
            return self.clipboard_label

        order = self.locator.next_order_number(self.buffer.text, name)
        if order is not None:
            return f"{name}({order})"
        return name

    def build(self, file_name: str) -> str:
        return self._uploading_placeholder(self.label_for(file_name))

    def _uploading_placeholder(self, label: str) -> str:
        placeholder = self.locator.uploading_span(label) + "\n"
        if not self.buffer.caret_on_empty_line():
            placeholder = "\n" + placeholder
        return placeholder

    # =========================================================================
    # Operations
    # =========================================================================

    def insert(self, file_id: str, file_name: str) -> PlaceholderEntry:
        """Insert the uploading span for a file (once per file id)."""
        existing = self._entries.get(file_id)
        if existing is not None:
            return existing

        label = self.label_for(file_name)
        placeholder = self._uploading_placeholder(label)
        entry = PlaceholderEntry(
            file_id=file_id,
            file_name=file_name,
            label=label,
            uploading=placeholder,
            current=placeholder,
        )
        self._entries[file_id] = entry
        if self.enabled:
            self.buffer.insert_text(placeholder)
        return entry

    def mark_processing(self, file_id: str) -> bool:
        entry = self._entries.get(file_id)
        if entry is None or entry.is_processing:
            return False

        if entry.processing is None:
            # Keep the uploading span's surrounding line breaks
            lead = "\n" if entry.uploading.startswith("\n") else ""
            entry.processing = f"{lead}{self.locator.processing_span(entry.label)}\n"

        replaced = self._replace(entry.current, entry.processing)
        entry.current = entry.processing
        return replaced

    def restore_uploading(self, file_id: str) -> bool:
        entry = self._entries.get(file_id)
        if entry is None or not entry.is_processing:
            return False
        replaced = self._replace(entry.current, entry.uploading)
        entry.current = entry.uploading
        return replaced

    def replace_with(self, file_id: str, markup: str) -> bool:
        """Swap the live span for the final markup and forget the entry."""
        entry = self._entries.pop(file_id, None)
        if entry is None or entry.current is None:
            return False
        return self._replace(entry.current.strip(), markup)

    def remove(self, file_id: str) -> bool:
        """Delete the live span from the buffer and forget the entry."""
        entry = self._entries.pop(file_id, None)
        if entry is None or entry.current is None:
            return False
        return self._replace(entry.current, "")

    def clear_all(self) -> None:
        """Remove every live span (user cancelled everything)."""
        for file_id in list(self._entries):
            self.remove(file_id)

    def forget_all(self) -> None:
        """Drop all bookkeeping without touching the buffer."""
        self._entries.clear()

    def _replace(self, old: str, new: str) -> bool:
        if not self.enabled:
            return False
        text = self.buffer.text
        for candidate in self.locator.ellipsis_variants(old):
            if candidate and candidate in text:
                return self.buffer.replace_text(candidate, new)
        logger.debug(f"Placeholder not found in document, skipping replace: {old.strip()!r}")
        return False
