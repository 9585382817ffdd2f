"""
Local media storage for post attachments and avatars.

Files live flat under the uploads directory and are served as ``/uploads/<name>``.
Deleted post media is moved into ``<uploads>/deleted`` rather than removed, so
it can be recovered by hand.
"""

from __future__ import annotations

import asyncio
import secrets
import shutil
import time
from dataclasses import dataclass
from pathlib import Path

import structlog
from fastapi import UploadFile

from uconnect.config import get_settings
from uconnect.errors import ValidationError

logger = structlog.get_logger()

IMAGE_EXTENSIONS = frozenset({".jpeg", ".jpg", ".png", ".gif"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".mov", ".webm"})
MEDIA_EXTENSIONS = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS

QUARANTINE_DIRNAME = "deleted"
PUBLIC_PREFIX = "/uploads/"
_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class StoredMedia:
    filename: str
    url: str
    media_type: str


class MediaStorage:
    """Save uploads and quarantine files that are no longer referenced."""

    def __init__(self, uploads_dir: str | Path, max_bytes: int) -> None:
        self.root = Path(uploads_dir)
        self.quarantine_dir = self.root / QUARANTINE_DIRNAME
        self.max_bytes = max_bytes

    def ensure_dirs(self) -> None:
        self.quarantine_dir.mkdir(parents=True, exist_ok=True)

    async def save_upload(
        self,
        upload: UploadFile,
        allowed_extensions: frozenset[str] = MEDIA_EXTENSIONS,
    ) -> StoredMedia:
        """
        Persist an uploaded file under a fresh name.

        Raises:
            ValidationError: If the extension is not allowed or the file is too large.
        """
        ext = Path(upload.filename or "").suffix.lower()
        if ext not in allowed_extensions:
            msg = "Only image/video files allowed"
            raise ValidationError(msg, code="unsupported_media")

        chunks: list[bytes] = []
        size = 0
        while chunk := await upload.read(_CHUNK_SIZE):
            size += len(chunk)
            if size > self.max_bytes:
                msg = "File too large"
                raise ValidationError(msg, code="file_too_large")
            chunks.append(chunk)

        filename = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"
        await asyncio.to_thread(self._write, self.root / filename, b"".join(chunks))
        media_type = "video" if ext in VIDEO_EXTENSIONS else "image"
        logger.info("media_saved", filename=filename, size=size, media_type=media_type)
        return StoredMedia(filename=filename, url=PUBLIC_PREFIX + filename, media_type=media_type)

    async def quarantine(self, filename: str) -> bool:
        """Move a file into the quarantine directory. Failures are logged, never raised."""
        name = Path(filename).name
        if not name:
            return False
        try:
            await asyncio.to_thread(self._move, self.root / name, self.quarantine_dir / name)
        except OSError:
            logger.exception("media_quarantine_failed", filename=name)
            return False
        logger.info("media_quarantined", filename=name)
        return True

    async def remove(self, filename: str) -> bool:
        """Delete a file outright (replaced avatars). Failures are logged, never raised."""
        name = Path(filename).name
        if not name:
            return False
        try:
            await asyncio.to_thread((self.root / name).unlink)
        except FileNotFoundError:
            return False
        except OSError:
            logger.exception("media_remove_failed", filename=name)
            return False
        return True

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def _move(self, src: Path, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(src, dest)


def filename_from_url(url: str | None) -> str | None:
    """Return the stored filename for a local ``/uploads/`` URL, else None."""
    if not url or not url.startswith(PUBLIC_PREFIX):
        return None
    return Path(url).name or None


_media_storage: MediaStorage | None = None


def get_media_storage() -> MediaStorage:
    """Get or create the media storage singleton."""
    global _media_storage  # noqa: PLW0603
    if _media_storage is None:
        settings = get_settings()
        _media_storage = MediaStorage(settings.uploads_dir, settings.max_upload_bytes)
    return _media_storage


def reset_media_storage() -> None:
    """Reset the media storage singleton (for testing)."""
    global _media_storage  # noqa: PLW0603
    _media_storage = None


async def quarantine_media(filename: str) -> bool:
    """Best-effort move of a deleted post's media file into quarantine."""
    return await get_media_storage().quarantine(filename)
