"""Event kinds and typed payloads.

Three channels exist per session:
    - TransportEvent: raised by the transport, consumed by the session manager
    - HostCommand:    raised by the host (editor), consumed by the session manager
    - HostEvent:      raised by the session manager, consumed by the host

Host notifications are pydantic models so the web host can forward them to
websocket clients with ``model_dump(mode="json")``.
"""
import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class TransportEvent(str, Enum):
    """Notifications emitted by a transport.

    Attributes:
        FILE_ADDED: (file) a file was accepted by the transport.
        PROGRESS: (percent) aggregate progress of the files in flight.
        FILE_REMOVED: (file, reason) a file left the transport; reason is
            "removed-by-user" or "cancel-all".
        UPLOAD: (batch_id, files) a batch is about to be preprocessed and sent.
        UPLOAD_PROGRESS: (file, {"bytes_uploaded", "bytes_total"}) per-file progress.
        UPLOAD_SUCCESS: (file, response) the backend stored the file.
        UPLOAD_ERROR: (file, error, response) the transfer or a stage failed.
        CANCEL_ALL: () every in-flight file was cancelled.
    """
    FILE_ADDED = "file-added"
    PROGRESS = "progress"
    FILE_REMOVED = "file-removed"
    UPLOAD = "upload"
    UPLOAD_PROGRESS = "upload-progress"
    UPLOAD_SUCCESS = "upload-success"
    UPLOAD_ERROR = "upload-error"
    CANCEL_ALL = "cancel-all"


class HostCommand(str, Enum):
    """Commands a host sends to its upload session.

    Attributes:
        ADD_FILES: (files, pasted=False) files picked or dropped.
        CANCEL_UPLOAD: (file_id or None) cancel one file, or all.
        PASTE: (files, mime_types) clipboard paste into the editor.
    """
    ADD_FILES = "add-files"
    CANCEL_UPLOAD = "cancel-upload"
    PASTE = "paste"


class HostEvent(str, Enum):
    """Lifecycle notifications produced for the host."""
    UPLOADS_ABORTED = "uploads-aborted"
    UPLOAD_STARTED = "upload-started"
    UPLOAD_CANCELLED = "upload-cancelled"
    UPLOAD_ERROR = "upload-error"
    UPLOAD_SUCCESS = "upload-success"
    UPLOADS_PREPROCESSING_COMPLETE = "uploads-preprocessing-complete"
    ALL_UPLOADS_COMPLETE = "all-uploads-complete"
    UPLOADS_CANCELLED = "uploads-cancelled"


class HostNotification(BaseModel):
    """Base notification; session-wide events carry no extra data."""
    kind: HostEvent = Field(..., description="Lifecycle moment")
    ts: float = Field(default_factory=time.time, description="Timestamp")


class UploadStarted(HostNotification):
    kind: HostEvent = HostEvent.UPLOAD_STARTED
    file_name: str = Field(..., description="Name of the file being uploaded")


class UploadCancelled(HostNotification):
    kind: HostEvent = HostEvent.UPLOAD_CANCELLED
    file_id: str = Field(..., description="ID of the cancelled file")


class UploadFailed(HostNotification):
    kind: HostEvent = HostEvent.UPLOAD_ERROR
    file_id: str = Field(..., description="ID of the failed file")
    file_name: str = Field(..., description="Name of the failed file")
    payload: Optional[Any] = Field(None, description="Response body or error text")


class UploadSucceeded(HostNotification):
    kind: HostEvent = HostEvent.UPLOAD_SUCCESS
    file_name: str = Field(..., description="Name of the uploaded file")
    payload: dict = Field(default_factory=dict, description="Upload record returned by storage")
