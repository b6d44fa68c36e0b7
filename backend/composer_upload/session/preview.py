"""Video preview extraction step run between success and placeholder replace.

A host that can render video frames plugs a generator in; without one the
step returns immediately. A failing generator never fails the upload.
"""
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from ..files import UploadFile, is_video

logger = logging.getLogger(__name__)

# (file, upload_url) -> preview payload or None
PreviewGenerator = Callable[[UploadFile, str], Union[Any, Awaitable[Any]]]


class PreviewExtractor:
    def __init__(self, generator: Optional[PreviewGenerator] = None) -> None:
        self.generator = generator

    def applies_to(self, file: UploadFile) -> bool:
        return self.generator is not None and is_video(file.name)

    async def extract(self, file: UploadFile, upload_url: Optional[str]) -> Optional[Any]:
        if not self.applies_to(file):
            return None
        try:
            preview = self.generator(file, upload_url or "")
            if inspect.isawaitable(preview):
                preview = await preview
        except Exception as e:
            logger.warning(f"Video preview extraction failed for {file.name}: {e}")
            return None
        if preview is not None:
            file.meta["preview"] = preview
        return preview
