"""Blob storage for avatars and cover images."""

import asyncio
from pathlib import Path
from typing import Protocol
from uuid import uuid4

import structlog

from src.errors import InternalError, ValidationError

logger = structlog.get_logger(__name__)

# Accepted upload types and the suffix each is stored under
IMAGE_SUFFIXES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

EXTENSION_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def image_suffix(filename: str, content_type: str | None) -> str:
    """Resolve the stored suffix for an uploaded image.

    The declared content type decides; the filename extension is only
    consulted when the client sent no specific type.

    Raises:
        ValidationError: If the upload is not a PNG, JPEG, GIF or WebP image
    """
    media_type = (content_type or "").split(";")[0].strip().lower()
    if not media_type or media_type == "application/octet-stream":
        media_type = EXTENSION_TYPES.get(Path(filename or "").suffix.lower(), "")

    suffix = IMAGE_SUFFIXES.get(media_type)
    if suffix is None:
        raise ValidationError("Only PNG, JPEG, GIF or WebP images are allowed")
    return suffix


class MediaStorage(Protocol):
    """Stores a blob and returns the URL it is served from."""

    async def store(self, filename: str, content: bytes, content_type: str | None = None) -> str:
        ...


class LocalMediaStorage:
    """Writes blobs to a local directory served as static files.

    Args:
        root: Directory the files are written to
        base_url: URL prefix the directory is served under
        max_bytes: Largest accepted blob
    """

    def __init__(self, root: str | Path, base_url: str, max_bytes: int):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes

    async def store(self, filename: str, content: bytes, content_type: str | None = None) -> str:
        """Write the blob under a unique name.

        Raises:
            ValidationError: If the blob is empty, larger than max_bytes, or
                not an accepted image type
            InternalError: If the file cannot be written
        """
        if not content:
            raise ValidationError("Uploaded file is empty")
        if len(content) > self.max_bytes:
            raise ValidationError(f"Uploaded file exceeds {self.max_bytes} bytes")

        suffix = image_suffix(filename, content_type)
        name = f"{uuid4().hex}{suffix}"
        path = self.root / name

        try:
            await asyncio.to_thread(self._write, path, content)
        except OSError as e:
            logger.error("media_store_failed", filename=filename, error=str(e))
            raise InternalError("Error uploading file") from e

        logger.info(
            "media_stored",
            name=name,
            size_bytes=len(content),
            content_type=content_type,
        )
        return f"{self.base_url}/{name}"

    @staticmethod
    def _write(path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
