"""Error aggregation for upload batches.

Per-file failures are buffered while a batch is in flight and reported once
the batch settles:
    - no buffered errors -> nothing is shown
    - one error          -> a single-file message built from its payload
    - several errors     -> one consolidated message listing every file

The buffer is cleared on every session reset, whether or not its errors were
ever shown, so a user cancel never surfaces errors for the files it killed.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

from ..exceptions import TransferFailure

logger = logging.getLogger(__name__)

GENERIC_UPLOAD_ERROR = "Sorry, there was an error uploading {file_name}. Please try again."
FILE_TOO_LARGE_ERROR = "Sorry, the file {file_name} is too big to upload."
BULK_UPLOAD_ERROR = "Sorry, there were errors uploading the following files:"


@dataclass
class ErrorRecord:
    """A buffered failure: the response body or exception, and the file it belongs to."""
    payload: Any
    file_name: str


class ErrorPresenter(ABC):
    """Shows a user-facing message (a dialog in an interactive host)."""

    @abstractmethod
    def alert(self, message: str) -> None:
        pass


class LoggingPresenter(ErrorPresenter):
    """Default presenter for headless sessions."""

    def alert(self, message: str) -> None:
        logger.warning(f"Upload alert: {message}")


def _status_and_body(payload: Any):
    if isinstance(payload, TransferFailure):
        return payload.status_code, payload.body
    status = getattr(payload, "status", None)
    body = getattr(payload, "body", None)
    if status is not None or body is not None:
        return status, body
    if isinstance(payload, dict):
        return None, payload
    return None, None


def describe_upload_error(payload: Any, file_name: str) -> str:
    """Build the message shown for a single failed file.

    Args:
        payload: Response object (with ``status``/``body``), TransferFailure,
            decoded body dict, exception or plain string.
        file_name: Name of the file that failed.

    Returns:
        A user-facing message.
    """
    status, body = _status_and_body(payload)

    if status == 413:
        return FILE_TOO_LARGE_ERROR.format(file_name=file_name)

    if isinstance(body, dict):
        if body.get("message"):
            return str(body["message"])
        errors = body.get("errors")
        if errors:
            if isinstance(errors, (list, tuple)):
                return "\n".join(str(error) for error in errors)
            return str(errors)

    if isinstance(payload, str) and payload:
        return payload

    if isinstance(payload, Exception) and not isinstance(payload, TransferFailure) and str(payload):
        return str(payload)

    return GENERIC_UPLOAD_ERROR.format(file_name=file_name)


def describe_bulk_upload_errors(records: List[ErrorRecord]) -> str:
    lines = [BULK_UPLOAD_ERROR]
    for record in records:
        lines.append(f"- {record.file_name}: {describe_upload_error(record.payload, record.file_name)}")
    return "\n".join(lines)


class ErrorAggregator:
    """Buffers per-file failures and reports them once per settled batch."""

    def __init__(self, presenter: Optional[ErrorPresenter] = None) -> None:
        self.presenter = presenter or LoggingPresenter()
        self.records: List[ErrorRecord] = []

    def __len__(self) -> int:
        return len(self.records)

    def buffer(self, payload: Any, file_name: str) -> None:
        self.records.append(ErrorRecord(payload=payload, file_name=file_name))

    def report(self) -> Optional[str]:
        """Show the buffered errors, single or consolidated.

        Returns:
            The message shown, or None when nothing was buffered.
        """
        if not self.records:
            return None

        if len(self.records) == 1:
            record = self.records[0]
            message = describe_upload_error(record.payload, record.file_name)
        else:
            message = describe_bulk_upload_errors(self.records)

        logger.info(f"Reporting {len(self.records)} upload error(s)")
        self.presenter.alert(message)
        return message

    def clear(self) -> None:
        self.records.clear()
