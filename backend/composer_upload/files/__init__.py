"""File models for the composer upload flow.

Raw payloads come from the host (picker, paste, drop); accepted payloads are
wrapped as UploadFile objects and carry per-file meta through preprocessing
and transfer.
"""
from .schemas import (
    FileType,
    RawFile,
    UploadContext,
    UploadFile,
    get_extension,
    get_file_type,
    is_image,
    is_video,
)

__all__ = [
    "FileType",
    "RawFile",
    "UploadContext",
    "UploadFile",
    "get_extension",
    "get_file_type",
    "is_image",
    "is_video",
]
