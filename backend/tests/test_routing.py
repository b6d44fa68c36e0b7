"""Tests for the upload policy, handler registry and routing gate."""
import pytest
from conftest import raw

from composer_upload.config import UploadSettings
from composer_upload.exceptions import CapacityExceeded, RoutingFailure
from composer_upload.files import UploadContext
from composer_upload.routing import (
    HandlerRegistry,
    RoutingGate,
    UploadValidator,
    ValidationResult,
    normalize_result,
)


@pytest.fixture
def validator():
    return UploadValidator(UploadSettings(
        authorized_extensions=["png", ".JPG", "pdf"],
        authorized_extensions_for_staff=["zip"],
        max_image_size_kb=1,
        max_attachment_size_kb=2,
    ))


class TestUploadValidator:
    def test_authorized_image(self, validator):
        result = validator(raw("a.png"), UploadContext())
        assert result
        assert result.reasons == []

    def test_extensions_normalized(self, validator):
        assert validator(raw("photo.jpg"), UploadContext()).allowed

    def test_user_cannot_upload(self, validator):
        result = validator(raw("a.png"), UploadContext(can_upload=False))
        assert not result
        assert result.message == "Sorry, you are not allowed to upload files."

    def test_unauthorized_extension(self, validator):
        result = validator(raw("tool.exe", content_type="application/octet-stream"), UploadContext())
        assert not result
        assert "tool.exe is not an authorized file type" in result.message

    def test_staff_extensions(self, validator):
        archive = raw("dump.zip", content_type="application/zip")
        assert not validator(archive, UploadContext())
        assert validator(archive, UploadContext(is_staff=True))

    def test_staff_any_file_in_pm(self, validator):
        binary = raw("tool.exe", content_type="application/octet-stream")
        assert validator(binary, UploadContext(is_staff=True, is_private_message=True))
        assert not validator(binary, UploadContext(is_private_message=True))

    def test_wildcard(self):
        validator = UploadValidator(UploadSettings(authorized_extensions=["*"]))
        assert validator(raw("anything.xyz"), UploadContext())

    def test_size_limit_by_category(self, validator):
        assert not validator(raw("a.png", size=1025), UploadContext())
        assert validator(raw("doc.pdf", size=1025, content_type="application/pdf"), UploadContext())
        assert not validator(raw("doc.pdf", size=2049, content_type="application/pdf"), UploadContext())

    def test_empty_file(self, validator):
        result = validator(raw("a.png", size=0), UploadContext())
        assert not result
        assert "is empty" in result.message

    def test_normalize_result(self):
        assert normalize_result(True).allowed
        rejected = normalize_result(False)
        assert not rejected.allowed
        assert rejected.reasons
        original = ValidationResult(allowed=False, reasons=["nope"])
        assert normalize_result(original) is original


class TestHandlerRegistry:
    def test_register_normalizes_extensions(self):
        registry = HandlerRegistry()
        token = registry.register([".PDF", " mp3 "], lambda files, coordinator: True)

        route = registry.get(token)
        assert route.extensions == frozenset({"pdf", "mp3"})
        assert registry.find("Song.MP3") is route
        assert registry.find("a.png") is None

    def test_register_needs_extensions(self):
        with pytest.raises(ValueError):
            HandlerRegistry().register(["  "], lambda files, coordinator: True)

    def test_first_match_wins(self):
        registry = HandlerRegistry()
        first = registry.register(["pdf"], lambda files, coordinator: True)
        registry.register(["pdf"], lambda files, coordinator: True)

        assert registry.find("a.pdf").token == first

    def test_unregister(self):
        registry = HandlerRegistry()
        token = registry.register(["pdf"], lambda files, coordinator: True)

        assert registry.unregister(token) is True
        assert registry.unregister(token) is False
        assert len(registry) == 0


class TestRoutingGate:
    @pytest.mark.asyncio
    async def test_handler_called_once_per_bucket(self):
        registry = HandlerRegistry()
        calls = []

        def handler(files, coordinator):
            calls.append(([file.name for file in files], coordinator))
            return True

        token = registry.register(["pdf"], handler)
        gate = RoutingGate(registry)
        files = [raw("a.pdf"), raw("b.png"), raw("c.pdf")]

        result = await gate.route(files, "coordinator")

        assert calls == [(["a.pdf", "c.pdf"], "coordinator")]
        assert [file.name for file in result.unhandled] == ["b.png"]
        assert list(result.routed) == [token]
        assert result.routed_count == 2

    @pytest.mark.asyncio
    async def test_async_handler(self):
        registry = HandlerRegistry()

        async def handler(files, coordinator):
            return True

        registry.register(["pdf"], handler)
        result = await RoutingGate(registry).route([raw("a.pdf")], None)

        assert result.unhandled == []

    @pytest.mark.asyncio
    async def test_refusal_aborts(self):
        registry = HandlerRegistry()
        registry.register(["pdf"], lambda files, coordinator: False)

        with pytest.raises(RoutingFailure) as excinfo:
            await RoutingGate(registry).route([raw("a.pdf"), raw("b.png")], None)

        assert excinfo.value.extensions == ["pdf"]
        assert excinfo.value.file_count == 1

    @pytest.mark.asyncio
    async def test_raising_handler_is_a_refusal(self, caplog):
        def handler(files, coordinator):
            raise RuntimeError("viewer unavailable")

        registry = HandlerRegistry()
        registry.register(["pdf"], handler)

        with pytest.raises(RoutingFailure) as excinfo:
            await RoutingGate(registry).route([raw("a.pdf"), raw("b.png")], None)

        assert excinfo.value.extensions == ["pdf"]
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert "Upload handler for pdf raised: viewer unavailable" in caplog.text

    @pytest.mark.asyncio
    async def test_capacity_counts_unhandled_only(self):
        registry = HandlerRegistry()
        registry.register(["pdf"], lambda files, coordinator: True)
        gate = RoutingGate(registry, max_simultaneous=2)

        result = await gate.route([raw("a.pdf"), raw("b.png"), raw("c.png")], None)
        assert len(result.unhandled) == 2

        with pytest.raises(CapacityExceeded) as excinfo:
            await gate.route([raw("a.png"), raw("b.png"), raw("c.png")], None)
        assert str(excinfo.value) == "Sorry, you can only upload 2 file(s) at a time."

    @pytest.mark.asyncio
    async def test_zero_means_unlimited(self):
        gate = RoutingGate(HandlerRegistry(), max_simultaneous=0)
        result = await gate.route([raw(f"{index}.png") for index in range(20)], None)
        assert len(result.unhandled) == 20
