"""File models shared by every stage of the composer upload flow.

This module defines the data models for files moving through a session:
- RawFile: a file payload as handed over by a picker, paste or drop
- UploadFile: the transport-side wrapper of an accepted RawFile
- UploadContext: who is uploading and where (private message, staff)
- FileType: Enum for categorizing files (image, video, audio, other)

File categories are decided by filename extension, because pasted and dropped
files frequently arrive with an empty or generic MIME type.
"""
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class FileType(str, Enum):
    """Supported file type categories.

    Files are categorized by extension into these groups:
    - IMAGE: png, webp, jpg/jpeg, gif, svg, bmp, avif, ico, heic, heif
    - VIDEO: mov, mp4, webm, m4v, 3gp, ogv, avi, mpeg
    - AUDIO: mp3, ogg/oga, opus, wav, m4a/m4b/m4p/m4r, aac, flac
    - OTHER: All other file types
    """
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    OTHER = "other"


# Extension patterns by category
FILE_TYPE_PATTERNS = {
    FileType.IMAGE: re.compile(r"\.(png|webp|jpe?g|gif|svg|bmp|avif|ico|heic|heif)$", re.IGNORECASE),
    FileType.VIDEO: re.compile(r"\.(mov|mp4|webm|m4v|3gp|ogv|avi|mpeg)$", re.IGNORECASE),
    FileType.AUDIO: re.compile(r"\.(mp3|og[ga]|opus|wav|m4[abpr]|aac|flac)$", re.IGNORECASE),
}


def get_file_type(filename: str) -> FileType:
    """Determine file type category from a filename.

    Args:
        filename: Filename with extension (e.g., "photo.JPG", "clip.mp4")

    Returns:
        FileType enum value (IMAGE, VIDEO, AUDIO, or OTHER)

    Examples:
        >>> get_file_type("photo.jpg")
        FileType.IMAGE
        >>> get_file_type("notes.txt")
        FileType.OTHER
    """
    for file_type, pattern in FILE_TYPE_PATTERNS.items():
        if pattern.search(filename or ""):
            return file_type
    return FileType.OTHER


def is_image(filename: str) -> bool:
    return get_file_type(filename) == FileType.IMAGE


def is_video(filename: str) -> bool:
    return get_file_type(filename) == FileType.VIDEO


def get_extension(filename: str) -> str:
    """Return the lowercase extension without its dot ("" when there is none)."""
    return PurePosixPath(filename or "").suffix.lstrip(".").lower()


@dataclass
class RawFile:
    """A file payload submitted by the host (picker, paste or drop).

    Attributes:
        name: Original filename, possibly empty for pasted clipboard data.
        content_type: MIME type reported by the host.
        data: Raw file bytes.
    """
    name: str
    content_type: str = "application/octet-stream"
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return get_extension(self.name)


@dataclass
class UploadFile:
    """A file accepted into the transport pipeline.

    Preprocessing stages may replace ``data`` (e.g. recompression), which is
    why the digest stage always runs last.
    """
    name: str
    type: str
    data: bytes
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    meta: Dict[str, Any] = field(default_factory=dict)
    bytes_uploaded: int = 0
    raw: Optional[RawFile] = None

    @classmethod
    def from_raw(cls, raw: RawFile, **meta: Any) -> "UploadFile":
        return cls(name=raw.name, type=raw.content_type, data=raw.data, meta=dict(meta), raw=raw)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return get_extension(self.name)

    @property
    def file_type(self) -> FileType:
        return get_file_type(self.name)


class UploadContext(BaseModel):
    """Who is uploading and into what kind of composer.

    The validator uses these flags; ``is_private_message`` is also copied onto
    every accepted file's meta so the storage side can scope access.
    """
    can_upload: bool = Field(default=True, description="User may upload at all")
    is_staff: bool = Field(default=False, description="User is staff (admin/moderator)")
    is_private_message: bool = Field(default=False, description="Composer targets a private message")
