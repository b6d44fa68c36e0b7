"""Error taxonomy for the upload coordinator.

Batch-level failures (validation, routing, capacity) are raised by the gate and
caught by the session manager, which aborts the whole pending add before any
transfer starts. TransferFailure is per-file: transports raise it for a
rejected request and the manager buffers it for the error aggregator.

User cancellation is not an exception; the manager tracks it with a flag.
"""
from typing import Any, Optional


class UploadError(Exception):
    """Base class for all upload coordinator errors."""


class ValidationRejection(UploadError):
    """A file failed the upload policy; no transport attempt is made."""

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        self.reason = reason
        super().__init__(reason)


class RoutingFailure(UploadError):
    """An external upload handler refused its files."""

    def __init__(self, extensions, file_count: int):
        self.extensions = sorted(extensions)
        self.file_count = file_count
        super().__init__(
            f"Upload handler for {', '.join(self.extensions)} rejected {file_count} file(s)"
        )


class CapacityExceeded(UploadError):
    """More unhandled files than simultaneous uploads allow."""

    def __init__(self, count: int, max_files: int):
        self.count = count
        self.max_files = max_files
        super().__init__(
            f"Sorry, you can only upload {max_files} file(s) at a time."
        )


class TransferFailure(UploadError):
    """The storage backend rejected a transfer.

    Attributes:
        status_code: HTTP status of the response (None for non-HTTP transports).
        body: Decoded response body, used to build the user-facing message.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)
