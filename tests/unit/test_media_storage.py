"""Tests for local media storage and quarantine."""

import io
from pathlib import Path

import pytest
from fastapi import UploadFile

from uconnect.errors import ValidationError
from uconnect.media.storage import (
    IMAGE_EXTENSIONS,
    MediaStorage,
    filename_from_url,
    get_media_storage,
    quarantine_media,
)


def _upload(name: str, data: bytes = b"data") -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename=name)


@pytest.fixture
def storage(tmp_path: Path) -> MediaStorage:
    store = MediaStorage(tmp_path / "uploads", max_bytes=1024)
    store.ensure_dirs()
    return store


class TestSaveUpload:
    async def test_saves_under_fresh_name(self, storage: MediaStorage):
        stored = await storage.save_upload(_upload("Holiday.JPG", b"jpeg-bytes"))
        assert stored.media_type == "image"
        assert stored.filename.endswith(".jpg")
        assert stored.filename != "Holiday.JPG"
        assert stored.url == f"/uploads/{stored.filename}"
        assert (storage.root / stored.filename).read_bytes() == b"jpeg-bytes"

    async def test_video(self, storage: MediaStorage):
        stored = await storage.save_upload(_upload("clip.webm"))
        assert stored.media_type == "video"

    async def test_unsupported_extension(self, storage: MediaStorage):
        with pytest.raises(ValidationError) as exc_info:
            await storage.save_upload(_upload("script.exe"))
        assert exc_info.value.code == "unsupported_media"

    async def test_restricted_extensions(self, storage: MediaStorage):
        with pytest.raises(ValidationError):
            await storage.save_upload(_upload("clip.mp4"), allowed_extensions=IMAGE_EXTENSIONS)

    async def test_too_large(self, storage: MediaStorage):
        with pytest.raises(ValidationError) as exc_info:
            await storage.save_upload(_upload("big.png", b"x" * 2048))
        assert exc_info.value.code == "file_too_large"
        assert [p for p in storage.root.iterdir() if p.is_file()] == []


class TestQuarantine:
    async def test_moves_file(self, storage: MediaStorage):
        (storage.root / "a.png").write_bytes(b"img")
        assert await storage.quarantine("a.png") is True
        assert not (storage.root / "a.png").exists()
        assert (storage.quarantine_dir / "a.png").read_bytes() == b"img"

    async def test_missing_file_is_logged_not_raised(self, storage: MediaStorage):
        assert await storage.quarantine("missing.png") is False

    async def test_path_components_are_stripped(self, storage: MediaStorage, tmp_path: Path):
        outside = tmp_path / "secret.png"
        outside.write_bytes(b"keep")
        assert await storage.quarantine("../secret.png") is False
        assert outside.exists()

    async def test_module_helper_uses_configured_dir(self, uploads_dir: Path):
        get_media_storage().ensure_dirs()
        (uploads_dir / "b.png").write_bytes(b"img")
        assert await quarantine_media("b.png") is True
        assert (uploads_dir / "deleted" / "b.png").exists()


class TestRemove:
    async def test_remove(self, storage: MediaStorage):
        (storage.root / "old.png").write_bytes(b"img")
        assert await storage.remove("old.png") is True
        assert not (storage.root / "old.png").exists()

    async def test_remove_missing(self, storage: MediaStorage):
        assert await storage.remove("old.png") is False


class TestFilenameFromUrl:
    def test_local_upload(self):
        assert filename_from_url("/uploads/123-4.png") == "123-4.png"

    def test_external_url(self):
        assert filename_from_url("https://placehold.co/150x150") is None

    def test_empty(self):
        assert filename_from_url("") is None
        assert filename_from_url(None) is None
