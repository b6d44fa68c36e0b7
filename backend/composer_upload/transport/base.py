"""Transport interface and asyncio event plumbing.

The coordinator never moves bytes itself. It hands accepted files to a
Transport and listens to its notifications (see TransportEvent):

    add_files(files)   -> file-added per file
    upload(files)      -> upload(batch_id, files), preprocessors, then one
                          transfer task per file ending in upload-success or
                          upload-error
    cancel_one(id)     -> file-removed(file, "removed-by-user")
    cancel_all()       -> cancel-all, then file-removed(file, "cancel-all")

BaseTransport implements all of that on asyncio tasks; subclasses only provide
_send(). Retries are disabled: a failed transfer is reported, never repeated.
Cancelling a task is cooperative; a transfer already on the wire is dropped by
the underlying client when its task is cancelled.
"""
import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set

from ..events import NotificationChannel, TransportEvent
from ..exceptions import TransferFailure
from ..files import UploadFile

logger = logging.getLogger(__name__)

Preprocessor = Callable[[Sequence[UploadFile]], Awaitable[None]]

REMOVED_BY_USER = "removed-by-user"
REMOVED_BY_CANCEL_ALL = "cancel-all"


@dataclass
class TransferResponse:
    """What the storage backend answered.

    Attributes:
        status: HTTP-like status code.
        body: Decoded body; on success, the upload record.
    """
    status: int = 200
    body: Any = field(default_factory=dict)


class Transport(ABC):
    """Abstract transport consumed by the session manager."""

    events: NotificationChannel[TransportEvent]

    @abstractmethod
    def add_preprocessor(self, preprocessor: Preprocessor) -> None:
        pass

    @abstractmethod
    def remove_preprocessor(self, preprocessor: Preprocessor) -> None:
        pass

    @abstractmethod
    def add_files(self, files: Sequence[UploadFile]) -> None:
        pass

    @abstractmethod
    async def upload(self, files: Optional[Sequence[UploadFile]] = None) -> None:
        pass

    @abstractmethod
    def cancel_one(self, file_id: str) -> bool:
        pass

    @abstractmethod
    def cancel_all(self) -> None:
        pass

    @abstractmethod
    def destroy(self) -> None:
        pass

    @abstractmethod
    async def join(self) -> None:
        """Wait until every started transfer (and its handlers) has settled."""


class BaseTransport(Transport):
    """Task-per-file transport; subclasses implement _send()."""

    def __init__(self, *, debug_timings: bool = False) -> None:
        self.events = NotificationChannel("transport")
        self.debug_timings = debug_timings
        self.destroyed = False

        # file_id -> file accepted and not yet settled
        self._files: Dict[str, UploadFile] = {}

        # file_id -> transfer task that may still be cancelled
        self._tasks: Dict[str, asyncio.Task] = {}

        # every transfer task until it finishes, including outcome handlers
        self._running: Set[asyncio.Task] = set()

        self._preprocessors: List[Preprocessor] = []
        self._started_at: Dict[str, float] = {}

    @abstractmethod
    async def _send(self, file: UploadFile) -> TransferResponse:
        """Transfer one file.

        Returns:
            TransferResponse whose body is the stored upload record.

        Raises:
            TransferFailure: The backend rejected the file.
        """

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def add_preprocessor(self, preprocessor: Preprocessor) -> None:
        self._preprocessors.append(preprocessor)

    def remove_preprocessor(self, preprocessor: Preprocessor) -> None:
        if preprocessor in self._preprocessors:
            self._preprocessors.remove(preprocessor)

    def add_files(self, files: Sequence[UploadFile]) -> None:
        if self.destroyed:
            raise RuntimeError("Transport has been destroyed")
        for file in files:
            self._files[file.id] = file
            self.events.emit(TransportEvent.FILE_ADDED, file)

    async def upload(self, files: Optional[Sequence[UploadFile]] = None) -> None:
        """Announce a batch, preprocess it, and start one transfer per file."""
        pending = [f for f in (files if files is not None else list(self._files.values())) if f.id in self._files]
        if not pending:
            return

        batch_id = str(uuid.uuid4())
        started = time.perf_counter()
        for file in pending:
            self._started_at[file.id] = started

        logger.info(f"Starting upload batch {batch_id} with {len(pending)} file(s)")
        self.events.emit(TransportEvent.UPLOAD, batch_id, pending)

        for preprocessor in list(self._preprocessors):
            await preprocessor(pending)

        for file in pending:
            if self.destroyed or file.id not in self._files:
                continue

            error = file.meta.get("error")
            if error is not None:
                self._settle(file, "failed in preprocessing")
                await self.events.emit_async(TransportEvent.UPLOAD_ERROR, file, error, None)
                continue

            task = asyncio.ensure_future(self._transfer(file))
            self._tasks[file.id] = task
            self._running.add(task)
            task.add_done_callback(self._running.discard)

    async def _transfer(self, file: UploadFile) -> None:
        try:
            response = await self._send(file)
        except asyncio.CancelledError:
            logger.debug(f"Transfer of {file.name} cancelled")
            raise
        except Exception as exc:
            if file.id not in self._files:
                return
            self._settle(file, "failed")
            response = None
            if isinstance(exc, TransferFailure):
                response = TransferResponse(status=exc.status_code or 0, body=exc.body)
            await self.events.emit_async(TransportEvent.UPLOAD_ERROR, file, exc, response)
        else:
            if file.id not in self._files:
                return
            self._settle(file, "succeeded")
            await self.events.emit_async(TransportEvent.UPLOAD_SUCCESS, file, response)

    def _settle(self, file: UploadFile, outcome: str) -> None:
        """Forget a file before its outcome is announced, so cancel can't touch it."""
        self._files.pop(file.id, None)
        self._tasks.pop(file.id, None)
        started = self._started_at.pop(file.id, None)
        if self.debug_timings and started is not None:
            logger.info(f"[Timings] {file.name} {outcome} after {time.perf_counter() - started:.3f}s")

    # =========================================================================
    # Progress
    # =========================================================================

    def _report_progress(self, file: UploadFile, bytes_uploaded: int, bytes_total: int) -> None:
        file.bytes_uploaded = bytes_uploaded
        self.events.emit(
            TransportEvent.UPLOAD_PROGRESS,
            file,
            {"bytes_uploaded": bytes_uploaded, "bytes_total": bytes_total},
        )
        self.events.emit(TransportEvent.PROGRESS, self.total_progress())

    def total_progress(self) -> int:
        """Aggregate percentage over the files still in flight."""
        files = list(self._files.values())
        total = sum(f.size for f in files)
        if not total:
            return 0
        sent = sum(min(f.bytes_uploaded, f.size) for f in files)
        return round(sent / total * 100)

    # =========================================================================
    # Cancellation
    # =========================================================================

    def cancel_one(self, file_id: str) -> bool:
        file = self._files.pop(file_id, None)
        if file is None:
            return False

        task = self._tasks.pop(file_id, None)
        if task is not None:
            task.cancel()
        self._started_at.pop(file_id, None)

        logger.info(f"Cancelled upload of {file.name}")
        self.events.emit(TransportEvent.FILE_REMOVED, file, REMOVED_BY_USER)
        return True

    def cancel_all(self) -> None:
        files = list(self._files.values())
        tasks = list(self._tasks.values())
        self._files.clear()
        self._tasks.clear()
        self._started_at.clear()

        for task in tasks:
            task.cancel()

        self.events.emit(TransportEvent.CANCEL_ALL)
        for file in files:
            self.events.emit(TransportEvent.FILE_REMOVED, file, REMOVED_BY_CANCEL_ALL)

    def destroy(self) -> None:
        if self.destroyed:
            return
        for task in self._tasks.values():
            task.cancel()
        self._files.clear()
        self._tasks.clear()
        self._started_at.clear()
        self._preprocessors.clear()
        self.events.clear()
        self.destroyed = True

    async def join(self) -> None:
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    @property
    def in_flight(self) -> List[UploadFile]:
        return list(self._files.values())
