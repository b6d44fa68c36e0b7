"""Upload session coordinator for a rich-text composer."""
from .session import ComposerHost, UploadSessionManager

__all__ = ["ComposerHost", "UploadSessionManager"]
