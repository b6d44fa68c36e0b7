"""Tests for the upload HTTP and WebSocket endpoints."""
import asyncio

import pytest
from conftest import upload_body
from fastapi import FastAPI
from fastapi.testclient import TestClient

from composer_upload.config import AppConfig
from composer_upload.exceptions import TransferFailure
from composer_upload.session.registry import SessionRegistry
from composer_upload.session.router import get_registry, router, set_registry
from composer_upload.transport import BaseTransport, TransferResponse


class InstantTransport(BaseTransport):
    """Settles every transfer before upload() returns; names containing "fail" are rejected."""

    async def upload(self, files=None):
        await super().upload(files)
        await self.join()

    async def _send(self, file):
        if "fail" in file.name:
            raise TransferFailure("rejected", status_code=422, body={"errors": ["not allowed"]})
        return TransferResponse(status=200, body=upload_body(file.name))


class BlockingTransport(BaseTransport):
    """Transfers never finish on their own."""

    async def _send(self, file):
        await asyncio.Event().wait()


def _client(transport_factory):
    app = FastAPI()
    app.include_router(router)
    registry = SessionRegistry(transport_factory, config=AppConfig())
    set_registry(registry)
    return TestClient(app), registry


@pytest.fixture
def instant():
    client, registry = _client(InstantTransport)
    with client:
        yield client
        client.portal.call(registry.close_all)
    set_registry(None)


@pytest.fixture
def blocking():
    client, registry = _client(BlockingTransport)
    with client:
        yield client
        client.portal.call(registry.close_all)
    set_registry(None)


def _png(name="a.png"):
    return ("files", (name, b"\x89PNG data", "image/png"))


class TestAddFiles:
    def test_upload_inserts_markup(self, instant):
        response = instant.post("/uploads/s1/files", files=[_png()])

        assert response.status_code == 200
        data = response.json()
        assert data["session_id"] == "s1"
        assert data["accepted"] is True
        assert data["status"]["is_uploading"] is False

        view = instant.get("/uploads/s1").json()
        assert view["text"] == "![a](upload://a.png)\n"
        assert view["alerts"] == []

    def test_rejected_file_shows_alert(self, instant):
        response = instant.post(
            "/uploads/s1/files",
            files=[("files", ("notes.exe", b"data", "application/octet-stream"))],
        )

        assert response.json()["accepted"] is False
        view = instant.get("/uploads/s1").json()
        assert view["text"] == ""
        assert len(view["alerts"]) == 1
        assert "notes.exe is not an authorized file type" in view["alerts"][0]

    def test_transfer_failure_shows_alert(self, instant):
        instant.post("/uploads/s1/files", files=[_png("fail.png")])

        view = instant.get("/uploads/s1").json()
        assert view["alerts"] == ["not allowed"]
        assert view["text"] == ""

    def test_unknown_session(self, instant):
        assert instant.get("/uploads/missing").status_code == 404


class TestCancel:
    def test_cancel_one(self, blocking):
        data = blocking.post("/uploads/s1/files", files=[_png()]).json()
        [record] = data["status"]["in_progress"]
        assert record["state"] == "transferring"
        assert data["status"]["is_cancellable"] is True

        response = blocking.delete(f"/uploads/s1/files/{record['id']}")

        assert response.status_code == 200
        assert response.json() == {"cancelled": True, "file_id": record["id"]}
        view = blocking.get("/uploads/s1").json()
        assert view["status"]["in_progress"] == []
        assert view["text"] == ""

    def test_cancel_unknown_file(self, blocking):
        blocking.post("/uploads/s1/files", files=[_png()])
        assert blocking.delete("/uploads/s1/files/nope").status_code == 404

    def test_cancel_all(self, blocking):
        blocking.post("/uploads/s1/files", files=[_png("a.png"), _png("b.png")])

        response = blocking.delete("/uploads/s1/files")

        assert response.json() == {"cancelled": True}
        view = blocking.get("/uploads/s1").json()
        assert view["status"]["is_uploading"] is False
        assert view["text"] == ""

    def test_cancel_in_unknown_session(self, blocking):
        assert blocking.delete("/uploads/missing/files").status_code == 404
        assert blocking.delete("/uploads/missing/files/x").status_code == 404


class TestWebSocket:
    def test_status_then_notifications(self, instant):
        with instant.websocket_connect("/ws/uploads/s1") as websocket:
            status = websocket.receive_json()
            assert status["type"] == "status"
            assert status["session_id"] == "s1"

            instant.post("/uploads/s1/files", files=[_png()])

            kinds = []
            while "all-uploads-complete" not in kinds:
                message = websocket.receive_json()
                assert message["type"] == "notification"
                kinds.append(message["kind"])

        assert kinds[0] == "upload-started"
        assert "upload-success" in kinds

    def test_listener_count(self, instant):
        registry = get_registry()
        assert registry.get_listener_count("s1") == 0

        with instant.websocket_connect("/ws/uploads/s1") as websocket:
            websocket.receive_json()
            assert registry.get_listener_count("s1") == 1
            assert registry.get_listener_count("other") == 0

    def test_alert_pushed(self, instant):
        with instant.websocket_connect("/ws/uploads/s1") as websocket:
            websocket.receive_json()

            instant.post(
                "/uploads/s1/files",
                files=[("files", ("notes.exe", b"data", "application/octet-stream"))],
            )

            messages = [websocket.receive_json(), websocket.receive_json()]

        alerts = [message for message in messages if message["type"] == "alert"]
        assert len(alerts) == 1
        assert "notes.exe is not an authorized file type" in alerts[0]["message"]
        assert any(message.get("kind") == "uploads-aborted" for message in messages)

    def test_cancel_command(self, blocking):
        with blocking.websocket_connect("/ws/uploads/s1") as websocket:
            websocket.receive_json()
            blocking.post("/uploads/s1/files", files=[_png()])

            websocket.send_json({"type": "cancel"})

            kinds = []
            while "uploads-cancelled" not in kinds:
                kinds.append(websocket.receive_json().get("kind"))

        assert kinds[0] == "upload-started"

    def test_unknown_message(self, instant):
        with instant.websocket_connect("/ws/uploads/s1") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "ping"})

            reply = websocket.receive_json()

        assert reply == {"type": "error", "message": "Unknown message type: ping"}
