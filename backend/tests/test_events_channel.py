"""Tests for the notification channel."""
import asyncio
import logging

import pytest

from composer_upload.events import (
    HostEvent,
    HostNotification,
    NotificationChannel,
    TransportEvent,
    UploadFailed,
    UploadStarted,
)


class TestRegistration:
    def test_listeners_run_in_order(self):
        channel = NotificationChannel("test")
        calls = []
        channel.on(TransportEvent.PROGRESS, lambda p: calls.append(("first", p)))
        channel.on(TransportEvent.PROGRESS, lambda p: calls.append(("second", p)))

        channel.emit(TransportEvent.PROGRESS, 40)

        assert calls == [("first", 40), ("second", 40)]

    def test_off_returns_whether_registered(self):
        channel = NotificationChannel("test")
        listener = lambda: None
        channel.on(TransportEvent.CANCEL_ALL, listener)

        assert channel.off(TransportEvent.CANCEL_ALL, listener) is True
        assert channel.off(TransportEvent.CANCEL_ALL, listener) is False
        assert channel.listener_count() == 0

    def test_listener_count_per_kind(self):
        channel = NotificationChannel("test")
        channel.on(TransportEvent.UPLOAD, lambda *a: None)
        channel.on(TransportEvent.UPLOAD, lambda *a: None)
        channel.on(TransportEvent.PROGRESS, lambda *a: None)

        assert channel.listener_count(TransportEvent.UPLOAD) == 2
        assert channel.listener_count() == 3

        channel.clear()
        assert channel.listener_count() == 0

    def test_emit_without_listeners(self):
        NotificationChannel("test").emit(TransportEvent.CANCEL_ALL)


class TestFailureIsolation:
    def test_failing_listener_does_not_stop_delivery(self, caplog):
        channel = NotificationChannel("test")
        calls = []

        def broken(percent):
            raise RuntimeError("boom")

        channel.on(TransportEvent.PROGRESS, broken)
        channel.on(TransportEvent.PROGRESS, calls.append)

        with caplog.at_level(logging.ERROR):
            channel.emit(TransportEvent.PROGRESS, 10)

        assert calls == [10]
        assert "listener failed for progress" in caplog.text

    @pytest.mark.asyncio
    async def test_failing_async_listener_logged(self, caplog):
        channel = NotificationChannel("test")

        async def broken():
            raise RuntimeError("boom")

        channel.on(TransportEvent.CANCEL_ALL, broken)

        with caplog.at_level(logging.ERROR):
            await channel.emit_async(TransportEvent.CANCEL_ALL)

        assert "async listener failed for cancel-all" in caplog.text


class TestAsyncDelivery:
    @pytest.mark.asyncio
    async def test_emit_schedules_coroutines(self):
        channel = NotificationChannel("test")
        calls = []

        async def listener(value):
            await asyncio.sleep(0)
            calls.append(value)

        channel.on(TransportEvent.PROGRESS, listener)
        channel.emit(TransportEvent.PROGRESS, 1)
        assert calls == []

        await channel.drain()
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_emit_async_awaits_in_order(self):
        channel = NotificationChannel("test")
        calls = []

        async def slow():
            await asyncio.sleep(0.01)
            calls.append("slow")

        channel.on(TransportEvent.CANCEL_ALL, slow)
        channel.on(TransportEvent.CANCEL_ALL, lambda: calls.append("sync"))

        await channel.emit_async(TransportEvent.CANCEL_ALL)

        assert calls == ["slow", "sync"]


class TestNotifications:
    def test_json_dump_uses_kind_value(self):
        dumped = UploadStarted(file_name="a.png").model_dump(mode="json")

        assert dumped["kind"] == "upload-started"
        assert dumped["file_name"] == "a.png"
        assert "ts" in dumped

    def test_session_wide_notification(self):
        notification = HostNotification(kind=HostEvent.ALL_UPLOADS_COMPLETE)
        assert notification.model_dump(mode="json")["kind"] == "all-uploads-complete"

    def test_failed_payload_optional(self):
        failed = UploadFailed(file_id="1", file_name="a.png")
        assert failed.payload is None
        assert failed.kind == HostEvent.UPLOAD_ERROR
