"""Upload session orchestration and its web host."""
from .host import ComposerHost
from .manager import UploadSessionManager
from .markdown import MarkdownResolverChain, ShortUrlCache, get_upload_markdown, human_size
from .preview import PreviewExtractor
from .schemas import ACTIVE_STATES, FileUploadRecord, SessionStatus, UploadState

__all__ = [
    "ComposerHost",
    "UploadSessionManager",
    "MarkdownResolverChain",
    "ShortUrlCache",
    "get_upload_markdown",
    "human_size",
    "PreviewExtractor",
    "ACTIVE_STATES",
    "FileUploadRecord",
    "SessionStatus",
    "UploadState",
]
