"""Document-side collaborators: buffer interface, placeholder spans, auto-grid."""
from .autogrid import MIN_IMAGES_TO_AUTO_GRID, AutoGridHeuristic
from .buffer import DocumentBuffer, TextBuffer
from .locator import LocatedSpan, SpanLocator
from .placeholders import PlaceholderEntry, PlaceholderSynchronizer

__all__ = [
    "MIN_IMAGES_TO_AUTO_GRID",
    "AutoGridHeuristic",
    "DocumentBuffer",
    "TextBuffer",
    "LocatedSpan",
    "SpanLocator",
    "PlaceholderEntry",
    "PlaceholderSynchronizer",
]
