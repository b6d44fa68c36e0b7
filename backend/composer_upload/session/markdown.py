"""Markup inserted into the document for a stored upload.

The storage backend answers with an upload record such as::

    {
        "original_filename": "photo.jpg",
        "short_url": "upload://abc.jpg",
        "url": "/uploads/default/original/1X/abc.jpg",
        "thumbnail_width": 690,
        "thumbnail_height": 388,
        "filesize": 41230,
    }

get_upload_markdown() turns it into the default markup; collaborators may
register resolvers that override it (see MarkdownResolverChain).
"""
import inspect
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from ..files import FileType, get_file_type

logger = logging.getLogger(__name__)

# upload record -> markup, None/"" to keep the previous result
MarkdownResolver = Callable[[Dict[str, Any]], Union[Optional[str], Awaitable[Optional[str]]]]

SIZE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


def human_size(num_bytes: Optional[int]) -> str:
    """Format a byte count the way attachment links show it ("1.5 KB")."""
    size = float(num_bytes or 0)
    unit = 0
    while size >= 1024 and unit < len(SIZE_UNITS) - 1:
        size /= 1024
        unit += 1
    if unit == 0:
        return f"{int(size)} {SIZE_UNITS[0]}"
    return f"{size:.1f}".rstrip("0").rstrip(".") + f" {SIZE_UNITS[unit]}"


def _image_markdown(upload: Dict[str, Any]) -> str:
    name = re.sub(r"\.[^.]+$", "", upload.get("original_filename") or "")
    width = upload.get("thumbnail_width") or upload.get("width")
    height = upload.get("thumbnail_height") or upload.get("height")
    target = upload.get("short_url") or upload.get("url") or ""
    if width and height:
        return f"![{name}|{width}x{height}]({target})"
    return f"![{name}]({target})"


def get_upload_markdown(upload: Dict[str, Any]) -> str:
    """Default markup for an upload record, chosen by filename category."""
    filename = upload.get("original_filename") or ""
    short_url = upload.get("short_url") or upload.get("url") or ""
    file_type = get_file_type(filename)

    if file_type == FileType.IMAGE:
        return _image_markdown(upload)
    if file_type == FileType.AUDIO:
        return f"![{filename}|audio]({short_url})"
    if file_type == FileType.VIDEO:
        return f"![{filename}|video]({short_url})"
    return f"[{filename}|attachment]({short_url}) ({human_size(upload.get('filesize'))})"


class MarkdownResolverChain:
    """Ordered resolvers; the last non-empty result wins."""

    def __init__(self, resolvers: Iterable[MarkdownResolver] = ()) -> None:
        self.resolvers: List[MarkdownResolver] = list(resolvers)

    def add(self, resolver: MarkdownResolver) -> None:
        self.resolvers.append(resolver)

    async def resolve(self, upload: Dict[str, Any]) -> str:
        """Run every resolver in order; a failing resolver keeps the previous markup."""
        markdown = get_upload_markdown(upload)
        for resolver in self.resolvers:
            try:
                result = resolver(upload)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                logger.warning(f"Markdown resolver failed for {upload.get('original_filename')}: {e}")
                continue
            if result:
                markdown = result
        return markdown


class ShortUrlCache:
    """short_url -> upload record, filled on every successful upload."""

    def __init__(self) -> None:
        self._uploads: Dict[str, Dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._uploads)

    def __contains__(self, short_url: str) -> bool:
        return short_url in self._uploads

    def put(self, short_url: Optional[str], upload: Dict[str, Any]) -> None:
        if short_url:
            self._uploads[short_url] = upload

    def get(self, short_url: str) -> Optional[Dict[str, Any]]:
        return self._uploads.get(short_url)

    def clear(self) -> None:
        self._uploads.clear()
