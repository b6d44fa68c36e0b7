"""Upload session manager: the orchestrator of one composer's uploads.

The manager owns every other component and drives the per-file state machine:

    added -> (routed_away | queued) -> preprocessing -> transferring
          -> (succeeded | failed | cancelled)

Public entry points:
    - setup(host): bind transport, host command and pipeline listeners (once)
    - add_files(files, pasted=False): validate, route and start uploads
    - cancel(file_id=None): cancel one file, or everything
    - teardown(): unbind, reset and destroy the transport (idempotent)

Everything else happens in listeners reacting to transport and pipeline
notifications. Session-wide flags (is_uploading, is_processing_upload,
is_cancellable) are computed from the records; nothing sets them directly.

When the last in-progress record settles, the session fully resets: the
transport cancels all (internally), progress returns to 0, records, buffered
errors and tracked images are cleared, and the pipeline counters reset.

Thread Safety:
    Single asyncio event loop only. Every mutation happens inside a listener
    on that loop.
"""
import logging
import uuid
from collections import OrderedDict
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import AppConfig, PlaceholderSettings, UploadSettings
from ..document import AutoGridHeuristic, PlaceholderSynchronizer, SpanLocator
from ..events import (
    HostCommand,
    HostEvent,
    HostNotification,
    NotificationChannel,
    TransportEvent,
    UploadCancelled,
    UploadFailed,
    UploadStarted,
    UploadSucceeded,
)
from ..exceptions import CapacityExceeded, RoutingFailure, ValidationRejection
from ..files import RawFile, UploadContext, UploadFile
from ..preprocessing import PipelineContext, PipelineEvent, PreprocessorSpec, build_pipeline
from ..reporting import ErrorAggregator, ErrorPresenter, LoggingPresenter
from ..routing import (
    HandlerRegistry,
    HandlerToken,
    RoutingGate,
    UploadHandler,
    UploadValidator,
    Validator,
    normalize_result,
)
from ..transport import REMOVED_BY_CANCEL_ALL, TransferResponse, Transport
from .host import ComposerHost
from .markdown import MarkdownResolver, MarkdownResolverChain, ShortUrlCache
from .preview import PreviewExtractor
from .schemas import FileUploadRecord, SessionStatus, UploadState

logger = logging.getLogger(__name__)

TransportFactory = Callable[[], Transport]

PASTE_TEXT_TYPES = frozenset({"text/plain", "text/html"})


class UploadSessionManager:
    """Coordinates every upload of one composer session."""

    def __init__(
        self,
        transport_factory: TransportFactory,
        *,
        settings: Optional[UploadSettings] = None,
        placeholder_settings: Optional[PlaceholderSettings] = None,
        context: Optional[UploadContext] = None,
        validator: Optional[Validator] = None,
        handlers: Optional[HandlerRegistry] = None,
        preprocessors: Sequence[PreprocessorSpec] = (),
        markdown_resolvers: Iterable[MarkdownResolver] = (),
        preview_extractor: Optional[PreviewExtractor] = None,
        presenter: Optional[ErrorPresenter] = None,
        capabilities: Optional[Dict[str, Any]] = None,
        is_mobile_device: bool = False,
        checksum_algorithm: str = "sha1",
        session_id: Optional[str] = None,
    ) -> None:
        self.session_id = session_id or str(uuid.uuid4())
        self.transport_factory = transport_factory
        self.settings = settings or UploadSettings()
        self.placeholder_settings = placeholder_settings or PlaceholderSettings()
        self.context = context or UploadContext()

        self.validator: Validator = validator or UploadValidator(self.settings)
        self.handlers = handlers or HandlerRegistry()
        self.gate = RoutingGate(self.handlers, self.settings.simultaneous_uploads)

        self.presenter = presenter or LoggingPresenter()
        self.errors = ErrorAggregator(self.presenter)

        self.locator = SpanLocator(
            self.placeholder_settings.uploading_label,
            self.placeholder_settings.processing_label,
        )
        self.autogrid = AutoGridHeuristic(self.locator, enabled=self.settings.auto_grid_images)

        self.pipeline = build_pipeline(
            preprocessors,
            PipelineContext(
                upload_context=self.context,
                capabilities=dict(capabilities or {}),
                is_mobile_device=is_mobile_device,
            ),
            checksum_algorithm=checksum_algorithm,
        )

        self.markdown = MarkdownResolverChain(markdown_resolvers)
        self.preview_extractor = preview_extractor or PreviewExtractor()
        self.url_cache = ShortUrlCache()

        self.notifications: NotificationChannel[HostEvent] = NotificationChannel("session")

        # Bound state; None until setup()
        self.host: Optional[ComposerHost] = None
        self.transport: Optional[Transport] = None
        self.placeholders: Optional[PlaceholderSynchronizer] = None

        self.upload_progress = 0
        self._records: "OrderedDict[str, FileUploadRecord]" = OrderedDict()
        self._user_cancelled = False
        self._bound = False
        self._bindings: List[Tuple[NotificationChannel, Enum, Callable]] = []

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        transport_factory: TransportFactory,
        **kwargs: Any,
    ) -> "UploadSessionManager":
        kwargs.setdefault("settings", config.uploads)
        kwargs.setdefault("placeholder_settings", config.placeholders)
        kwargs.setdefault("checksum_algorithm", config.preprocessing.checksum_algorithm)
        return cls(transport_factory, **kwargs)

    # =========================================================================
    # Collaborator registration
    # =========================================================================

    def register_upload_handler(self, extensions: Iterable[str], handler: UploadHandler) -> HandlerToken:
        return self.handlers.register(extensions, handler)

    def unregister_upload_handler(self, token: HandlerToken) -> bool:
        return self.handlers.unregister(token)

    def add_markdown_resolver(self, resolver: MarkdownResolver) -> None:
        self.markdown.add(resolver)

    # =========================================================================
    # Aggregate state
    # =========================================================================

    @property
    def is_bound(self) -> bool:
        return self._bound

    @property
    def in_progress(self) -> List[FileUploadRecord]:
        return list(self._records.values())

    def get_record(self, file_id: str) -> Optional[FileUploadRecord]:
        return self._records.get(file_id)

    @property
    def is_uploading(self) -> bool:
        return any(record.is_active for record in self._records.values())

    @property
    def is_processing_upload(self) -> bool:
        return any(record.state == UploadState.PREPROCESSING for record in self._records.values())

    @property
    def is_cancellable(self) -> bool:
        return self.is_uploading and not self.is_processing_upload

    @property
    def status(self) -> SessionStatus:
        return SessionStatus(
            is_uploading=self.is_uploading,
            is_processing_upload=self.is_processing_upload,
            is_cancellable=self.is_cancellable,
            upload_progress=self.upload_progress,
            in_progress=[record.model_copy() for record in self._records.values()],
        )

    # =========================================================================
    # Setup / teardown
    # =========================================================================

    def setup(self, host: ComposerHost) -> None:
        """Bind every listener and create the transport.

        A second call while bound logs a warning and does nothing.
        """
        if self._bound:
            logger.warning(f"Upload session {self.session_id} is already set up")
            return

        self.host = host
        self.placeholders = PlaceholderSynchronizer(
            host.buffer,
            self.locator,
            enabled=self.settings.use_placeholders,
            clipboard_label=self.placeholder_settings.clipboard_label,
        )
        self.transport = self.transport_factory()
        self.transport.add_preprocessor(self.pipeline.run)

        events = self.transport.events
        self._bind(events, TransportEvent.FILE_ADDED, self._on_file_added)
        self._bind(events, TransportEvent.PROGRESS, self._on_progress)
        self._bind(events, TransportEvent.FILE_REMOVED, self._on_file_removed)
        self._bind(events, TransportEvent.UPLOAD, self._on_upload)
        self._bind(events, TransportEvent.UPLOAD_PROGRESS, self._on_upload_progress)
        self._bind(events, TransportEvent.UPLOAD_SUCCESS, self._on_upload_success)
        self._bind(events, TransportEvent.UPLOAD_ERROR, self._on_upload_error)
        self._bind(events, TransportEvent.CANCEL_ALL, self._on_cancel_all)

        self._bind(host.commands, HostCommand.ADD_FILES, self.add_files)
        self._bind(host.commands, HostCommand.CANCEL_UPLOAD, self.cancel)
        self._bind(host.commands, HostCommand.PASTE, self.paste)

        self._bind(self.pipeline.events, PipelineEvent.PROGRESS, self._on_stage_progress)
        self._bind(self.pipeline.events, PipelineEvent.FILE_COMPLETE, self._on_stage_complete)
        self._bind(self.pipeline.events, PipelineEvent.ALL_COMPLETE, self._on_preprocessing_complete)

        self._bound = True
        logger.info(f"Upload session {self.session_id} set up with {len(self._bindings)} listeners")

    def teardown(self) -> None:
        """Unbind, reset and destroy the transport. Safe to call repeatedly."""
        if not self._bound:
            return

        for channel, kind, listener in self._bindings:
            channel.off(kind, listener)
        self._bindings.clear()

        self._reset()

        if self.transport is not None:
            self.transport.remove_preprocessor(self.pipeline.run)
            self.transport.destroy()
            self.transport = None

        self.placeholders = None
        self.host = None
        self._bound = False
        logger.info(f"Upload session {self.session_id} torn down")

    def _bind(self, channel: NotificationChannel, kind: Enum, listener: Callable) -> None:
        channel.on(kind, listener)
        self._bindings.append((channel, kind, listener))

    # =========================================================================
    # Entry points
    # =========================================================================

    async def add_files(self, files: Iterable[RawFile], pasted: bool = False) -> bool:
        """Validate, route and start uploading a batch of raw files.

        Returns once the transfers have started, not once they have finished.
        Never raises: unexpected errors are logged.

        Returns:
            True if the batch was accepted (even if every file was routed to a
            handler), False if it was aborted or could not be processed.
        """
        if not self._bound:
            logger.warning(f"add_files called on upload session {self.session_id} before setup")
            return False
        try:
            return await self._add_files(list(files), pasted)
        except Exception as e:
            logger.warning(f"Error adding files to upload session {self.session_id}: {e}")
            return False

    async def _add_files(self, files: List[RawFile], pasted: bool) -> bool:
        if not files:
            return False

        try:
            for file in files:
                result = normalize_result(self.validator(file, self.context))
                if not result:
                    logger.warning(f"Rejected {file.name}: {result.message}")
                    raise ValidationRejection(file.name, result.message)
            routing = await self.gate.route(files, self)
        except (ValidationRejection, CapacityExceeded) as e:
            self.presenter.alert(str(e))
            self._abort_and_reset()
            return False
        except RoutingFailure as e:
            logger.warning(str(e))
            self._abort_and_reset()
            return False

        if not routing.unhandled:
            logger.info(f"All {routing.routed_count} file(s) taken by upload handlers")
            return True

        upload_files = [
            UploadFile.from_raw(raw, pasted=pasted, upload_type=self.settings.upload_type)
            for raw in routing.unhandled
        ]
        self.transport.add_files(upload_files)
        await self.transport.upload(upload_files)
        return True

    async def paste(self, files: Optional[Iterable[RawFile]], mime_types: Iterable[str] = ()) -> bool:
        """Add clipboard files, unless the clipboard also carries text."""
        files = list(files or [])
        if not files:
            return False
        if PASTE_TEXT_TYPES.intersection(mime_types or ()):
            logger.debug("Paste carries text; leaving it to the editor")
            return False
        return await self.add_files(files, pasted=True)

    def cancel(self, file_id: Optional[str] = None) -> bool:
        """Cancel one file, or every upload when no id is given.

        Ignored while any file is preprocessing.
        """
        if self.transport is None:
            return False
        if self.is_processing_upload:
            logger.info("Cancel ignored while uploads are preprocessing")
            return False

        if file_id:
            return self.transport.cancel_one(file_id)

        self._user_cancelled = True
        self.transport.cancel_all()
        return True

    # =========================================================================
    # Transport listeners
    # =========================================================================

    def _on_file_added(self, file: UploadFile) -> None:
        if self.context.is_private_message:
            file.meta["for_private_message"] = True
        self.autogrid.track(file.name)

    def _on_progress(self, percent: int) -> None:
        self.upload_progress = percent

    def _on_upload(self, batch_id: str, files: Sequence[UploadFile]) -> None:
        self.pipeline.add_need_processing(len(files))

        for file in files:
            self._records[file.id] = FileUploadRecord(
                id=file.id,
                file_name=file.name,
                extension=file.extension,
                bytes_total=file.size,
                state=UploadState.QUEUED,
            )
            self.placeholders.insert(file.id, file.name)
            self._notify(UploadStarted(file_name=file.name))

        if self.autogrid.should_group():
            self.autogrid.group(self.host.buffer)

        for file in files:
            record = self._records.get(file.id)
            if record is not None:
                record.state = UploadState.PREPROCESSING

        logger.debug(f"Batch {batch_id}: {len(files)} placeholder(s) inserted")

    def _on_upload_progress(self, file: UploadFile, progress: Dict[str, int]) -> None:
        record = self._records.get(file.id)
        if record is None:
            return
        record.bytes_uploaded = progress.get("bytes_uploaded", 0)
        record.bytes_total = progress.get("bytes_total", record.bytes_total)
        if record.bytes_total:
            record.progress = int(record.bytes_uploaded / record.bytes_total * 100)

    def _on_file_removed(self, file: UploadFile, reason: str) -> None:
        # cancel-all is handled by _on_cancel_all
        if reason == REMOVED_BY_CANCEL_ALL:
            return

        self._notify(UploadCancelled(file_id=file.id))
        file.meta["cancelled"] = True
        self._finish(file.id, UploadState.CANCELLED)
        self.placeholders.remove(file.id)

        if not self._records:
            self._user_cancelled = True
            self.transport.cancel_all()

    def _on_cancel_all(self) -> None:
        # Internal cancel-all (from _reset) does no cleanup
        if not self._user_cancelled:
            return

        self.placeholders.clear_all()
        self._user_cancelled = False
        self._reset()
        self._notify(HostNotification(kind=HostEvent.UPLOADS_CANCELLED))
        logger.info(f"Upload session {self.session_id}: uploads cancelled by user")

    async def _on_upload_success(self, file: UploadFile, response: Any) -> None:
        if self.transport is None:
            return

        upload = self._upload_body(response)
        markdown = await self.markdown.resolve(upload)
        self.url_cache.put(upload.get("short_url"), upload)
        await self.preview_extractor.extract(file, upload.get("url"))

        # Torn down or reset while resolving
        if self.transport is None or file.id not in self._records:
            return

        self.placeholders.replace_with(file.id, markdown)
        self._finish(file.id, UploadState.SUCCEEDED)
        self._notify(UploadSucceeded(file_name=file.name, payload=upload))

        if not self._records:
            self._notify(HostNotification(kind=HostEvent.ALL_UPLOADS_COMPLETE))
            self.errors.report()
            self._reset()

    def _on_upload_error(self, file: UploadFile, error: Any, response: Any = None) -> None:
        self._finish(file.id, UploadState.FAILED, error=error)
        self.placeholders.remove(file.id)
        file.meta["error"] = error

        if not self._user_cancelled:
            payload = response if response is not None else error
            self.errors.buffer(payload, file.name)
            self._notify(
                UploadFailed(file_id=file.id, file_name=file.name, payload=self._json_payload(payload))
            )
            logger.warning(f"Upload of {file.name} failed: {error}")

        if not self._records:
            self.errors.report()
            self._reset()

    # =========================================================================
    # Pipeline listeners
    # =========================================================================

    def _on_stage_progress(self, file: UploadFile, stage: Any) -> None:
        self.placeholders.mark_processing(file.id)

    def _on_stage_complete(self, file: UploadFile, stage: Any) -> None:
        self.placeholders.restore_uploading(file.id)

    def _on_preprocessing_complete(self) -> None:
        for record in self._records.values():
            if record.state == UploadState.PREPROCESSING:
                record.state = UploadState.TRANSFERRING
        self._notify(HostNotification(kind=HostEvent.UPLOADS_PREPROCESSING_COMPLETE))

    # =========================================================================
    # Helpers
    # =========================================================================

    def _notify(self, notification: HostNotification) -> None:
        self.notifications.emit(notification.kind, notification)

    def _finish(self, file_id: str, state: UploadState, error: Any = None) -> Optional[FileUploadRecord]:
        record = self._records.pop(file_id, None)
        if record is not None:
            record.state = state
            record.error = error
            logger.debug(f"{record.file_name} -> {state.value}")
        return record

    def _abort_and_reset(self) -> None:
        self._notify(HostNotification(kind=HostEvent.UPLOADS_ABORTED))
        self._reset()

    def _reset(self) -> None:
        if self.transport is not None:
            self.transport.cancel_all()
        self.upload_progress = 0
        self._records.clear()
        self.errors.clear()
        self.autogrid.reset()
        self.pipeline.reset()
        if self.placeholders is not None:
            self.placeholders.forget_all()

    @staticmethod
    def _upload_body(response: Any) -> Dict[str, Any]:
        body = response.body if isinstance(response, TransferResponse) else response
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _json_payload(payload: Any) -> Any:
        if isinstance(payload, TransferResponse):
            return payload.body
        if isinstance(payload, (dict, list, str)) or payload is None:
            return payload
        return str(payload)
