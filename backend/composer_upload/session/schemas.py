"""Session-side data models.

Defines the per-file record the session manager keeps for every upload in
flight, and the aggregate status it reports to hosts.
"""
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadState(str, Enum):
    """Lifecycle of one file the routing gate left to the transport.

    queued -> preprocessing -> transferring -> (succeeded | failed | cancelled)

    Files still being validated, or routed away to an upload handler, never
    get a record.
    """
    QUEUED = "queued"
    PREPROCESSING = "preprocessing"
    TRANSFERRING = "transferring"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


ACTIVE_STATES = frozenset({UploadState.QUEUED, UploadState.PREPROCESSING, UploadState.TRANSFERRING})


class FileUploadRecord(BaseModel):
    """One file accepted into the transport pipeline.

    Attributes:
        id: Same id as the transport's UploadFile.
        file_name: Display name.
        extension: Lowercase extension without the dot.
        progress: Percentage of bytes sent.
        bytes_uploaded: Bytes sent so far.
        bytes_total: Bytes to send.
        state: Current lifecycle state.
        error: Error payload once the file failed.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(..., description="Upload id")
    file_name: str = Field(..., description="Display name")
    extension: str = Field(default="", description="Lowercase extension")
    progress: int = Field(default=0, description="Percent of bytes sent")
    bytes_uploaded: int = Field(default=0, description="Bytes sent")
    bytes_total: int = Field(default=0, description="Bytes to send")
    state: UploadState = Field(default=UploadState.QUEUED, description="Lifecycle state")
    error: Optional[Any] = Field(default=None, description="Error payload")

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES


class SessionStatus(BaseModel):
    """Aggregate flags of a session, computed from its records."""
    is_uploading: bool = False
    is_processing_upload: bool = False
    is_cancellable: bool = False
    upload_progress: int = 0
    in_progress: List[FileUploadRecord] = Field(default_factory=list)


class AddFilesResponse(BaseModel):
    """Response of POST /uploads/{session_id}/files."""
    session_id: str
    accepted: bool = Field(..., description="False when the batch was aborted")
    status: SessionStatus


class SessionView(BaseModel):
    """Response of GET /uploads/{session_id}."""
    session_id: str
    status: SessionStatus
    text: str = Field(default="", description="Current document text")
    alerts: List[str] = Field(default_factory=list, description="Alerts shown so far")
