"""Tests for upload markup, resolver chains, the short-url cache and video previews."""
import pytest

from composer_upload.files import UploadFile
from composer_upload.session import (
    MarkdownResolverChain,
    PreviewExtractor,
    ShortUrlCache,
    get_upload_markdown,
    human_size,
)


class TestHumanSize:
    def test_bytes(self):
        assert human_size(500) == "500 Bytes"
        assert human_size(None) == "0 Bytes"

    def test_larger_units(self):
        assert human_size(1536) == "1.5 KB"
        assert human_size(1024 * 1024) == "1 MB"


class TestGetUploadMarkdown:
    def test_image_with_thumbnail_size(self):
        upload = {
            "original_filename": "photo.jpg",
            "short_url": "upload://abc.jpg",
            "url": "/uploads/default/original/1X/abc.jpg",
            "thumbnail_width": 690,
            "thumbnail_height": 388,
        }
        assert get_upload_markdown(upload) == "![photo|690x388](upload://abc.jpg)"

    def test_image_without_size(self):
        upload = {"original_filename": "photo.png", "url": "/u/photo.png"}
        assert get_upload_markdown(upload) == "![photo](/u/photo.png)"

    def test_audio_and_video(self):
        assert get_upload_markdown(
            {"original_filename": "song.mp3", "short_url": "upload://s.mp3"}
        ) == "![song.mp3|audio](upload://s.mp3)"
        assert get_upload_markdown(
            {"original_filename": "clip.mp4", "short_url": "upload://c.mp4"}
        ) == "![clip.mp4|video](upload://c.mp4)"

    def test_attachment(self):
        upload = {"original_filename": "report.pdf", "short_url": "upload://r.pdf", "filesize": 1536}
        assert get_upload_markdown(upload) == "[report.pdf|attachment](upload://r.pdf) (1.5 KB)"


class TestMarkdownResolverChain:
    @pytest.mark.asyncio
    async def test_default_markup(self):
        chain = MarkdownResolverChain()
        assert await chain.resolve({"original_filename": "a.png", "url": "/a.png"}) == "![a](/a.png)"

    @pytest.mark.asyncio
    async def test_last_non_empty_result_wins(self):
        async def custom(upload):
            return f"[custom]({upload['url']})"

        chain = MarkdownResolverChain([lambda upload: "first"])
        chain.add(custom)
        chain.add(lambda upload: None)

        assert await chain.resolve({"original_filename": "a.png", "url": "/a.png"}) == "[custom](/a.png)"

    @pytest.mark.asyncio
    async def test_failing_resolver_keeps_previous_result(self, caplog):
        async def broken(upload):
            raise KeyError("thumbnail")

        chain = MarkdownResolverChain([lambda upload: "first", broken])

        assert await chain.resolve({"original_filename": "a.png", "url": "/a.png"}) == "first"
        assert "Markdown resolver failed for a.png" in caplog.text


class TestShortUrlCache:
    def test_put_and_get(self):
        cache = ShortUrlCache()
        upload = {"short_url": "upload://a.png"}

        cache.put("upload://a.png", upload)
        cache.put(None, {"ignored": True})

        assert "upload://a.png" in cache
        assert cache.get("upload://a.png") is upload
        assert len(cache) == 1

        cache.clear()
        assert cache.get("upload://a.png") is None


class TestPreviewExtractor:
    def _video(self):
        return UploadFile(name="clip.mp4", type="video/mp4", data=b"v")

    @pytest.mark.asyncio
    async def test_without_generator(self):
        assert await PreviewExtractor().extract(self._video(), "/u/clip.mp4") is None

    @pytest.mark.asyncio
    async def test_only_videos(self):
        extractor = PreviewExtractor(lambda file, url: "frame")
        image = UploadFile(name="a.png", type="image/png", data=b"i")

        assert await extractor.extract(image, "/u/a.png") is None
        assert "preview" not in image.meta

    @pytest.mark.asyncio
    async def test_async_generator_result_stored(self):
        async def generator(file, url):
            return {"frame": url}

        file = self._video()
        preview = await PreviewExtractor(generator).extract(file, "/u/clip.mp4")

        assert preview == {"frame": "/u/clip.mp4"}
        assert file.meta["preview"] == preview

    @pytest.mark.asyncio
    async def test_failure_does_not_raise(self, caplog):
        def generator(file, url):
            raise RuntimeError("no decoder")

        file = self._video()
        assert await PreviewExtractor(generator).extract(file, None) is None
        assert "Video preview extraction failed for clip.mp4" in caplog.text
