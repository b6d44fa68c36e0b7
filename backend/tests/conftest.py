"""Shared test fixtures and helpers for the upload coordinator tests."""
import asyncio
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from composer_upload.document import TextBuffer
from composer_upload.events import HostEvent
from composer_upload.exceptions import TransferFailure
from composer_upload.files import RawFile, UploadFile
from composer_upload.reporting import ErrorPresenter
from composer_upload.session import ComposerHost, UploadSessionManager
from composer_upload.transport import BaseTransport, TransferResponse


class FakeTransport(BaseTransport):
    """Transport whose transfers wait until the test resolves them."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.transfers: Dict[str, asyncio.Future] = {}
        self.sent: List[UploadFile] = []

    def _future(self, file_id: str) -> asyncio.Future:
        if file_id not in self.transfers:
            self.transfers[file_id] = asyncio.get_running_loop().create_future()
        return self.transfers[file_id]

    async def _send(self, file: UploadFile) -> TransferResponse:
        self.sent.append(file)
        return await self._future(file.id)

    def succeed(self, file_id: str, body: Optional[dict] = None) -> None:
        self._future(file_id).set_result(TransferResponse(status=200, body=body or {}))

    def fail(self, file_id: str, status: int = 422, body: Optional[dict] = None) -> None:
        self._future(file_id).set_exception(
            TransferFailure("rejected", status_code=status, body=body or {})
        )


class RecordingPresenter(ErrorPresenter):
    def __init__(self) -> None:
        self.alerts: List[str] = []

    def alert(self, message: str) -> None:
        self.alerts.append(message)


class NotificationRecorder:
    """Collects every host notification of a session."""

    def __init__(self, session: UploadSessionManager) -> None:
        self.items = []
        for kind in HostEvent:
            session.notifications.on(kind, self.items.append)

    @property
    def kinds(self) -> List[HostEvent]:
        return [item.kind for item in self.items]

    def of(self, kind: HostEvent):
        return [item for item in self.items if item.kind == kind]


def raw(name: str, size: int = 10, content_type: str = "image/png") -> RawFile:
    return RawFile(name=name, content_type=content_type, data=b"x" * size)


def upload_body(name: str, **extra) -> dict:
    body = {
        "original_filename": name,
        "short_url": f"upload://{name}",
        "url": f"/uploads/default/original/1X/{name}",
        "filesize": 10,
    }
    body.update(extra)
    return body


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def presenter():
    return RecordingPresenter()


@pytest.fixture
def host():
    return ComposerHost(buffer=TextBuffer())


@pytest_asyncio.fixture
async def make_session(host, presenter):
    """Build a session bound to `host` with a FakeTransport; torn down on the test loop."""
    created = []

    def factory(**kwargs) -> UploadSessionManager:
        kwargs.setdefault("presenter", presenter)
        session = UploadSessionManager(FakeTransport, **kwargs)
        session.setup(host)
        created.append(session)
        return session

    yield factory

    for session in created:
        session.teardown()


@pytest.fixture
def session(make_session):
    return make_session()
