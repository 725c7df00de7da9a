"""
civica.services.storage_service — Object Storage Client
=========================================================

Uploads images to the external storage API and returns their public
URLs.  Bytes are validated locally (size, type) before anything is sent.

Endpoints:
  * ``POST {STORAGE_API_URL}/upload/{base}`` — multipart field ``image``,
    header ``X-API-Key``; replies ``{"success", "url", "filename"}``.
  * ``DELETE {STORAGE_API_URL}/delete/{filename}``.

Only the first segment of a path is sent as *base* (``avatars/u1`` →
``avatars``).
"""

from __future__ import annotations

import asyncio
import logging
import os
import random
import string
import time
from dataclasses import dataclass
from pathlib import Path

import httpx

from civica.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_API_URL = "https://storage.sangkaraprasetya.site"
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
ALLOWED_MIME_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}


@dataclass(frozen=True, slots=True)
class ImageUpload:
    """An image to upload: raw bytes plus the client's filename/MIME type."""

    content: bytes
    filename: str = "image.jpg"
    content_type: str | None = "image/jpeg"


def validate_image(image: ImageUpload) -> None:
    """Raise ValueError if *image* is empty, too large or not an image."""
    if not image.content:
        raise ValueError("Empty upload")
    if len(image.content) > MAX_FILE_SIZE:
        raise ValueError(
            f"File too large: {len(image.content)} bytes (max {MAX_FILE_SIZE // 1024 // 1024}MB)"
        )
    ext = Path(image.filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValueError(
            f"File type not allowed: {ext!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )
    if image.content_type and image.content_type not in ALLOWED_MIME_TYPES:
        raise ValueError(
            f"MIME type not allowed: {image.content_type!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_MIME_TYPES))}"
        )


def unique_filename() -> str:
    """``{millis}_{9 random chars}.jpg``"""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{time.time_ns() // 1_000_000}_{suffix}.jpg"


class StorageClient:
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (
            base_url or os.getenv("STORAGE_API_URL") or DEFAULT_STORAGE_API_URL
        ).rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("STORAGE_API_KEY", "")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        transport = self._transport or httpx.AsyncHTTPTransport(retries=1)
        return httpx.AsyncClient(
            timeout=30, transport=transport, headers={"X-API-Key": self.api_key}
        )

    async def upload_image(self, image: ImageUpload, path: str = "posts") -> str:
        """Upload one image and return its public URL.

        Raises ValueError for invalid input, StorageError when the server
        rejects the upload, httpx.HTTPError on transport failure.
        """
        validate_image(image)
        base = path.split("/")[0]
        filename = unique_filename()

        async with self._client() as client:
            resp = await client.post(
                f"{self.base_url}/upload/{base}",
                files={"image": (filename, image.content, image.content_type or "image/jpeg")},
            )
        if resp.status_code >= 400:
            raise StorageError(f"Upload failed: {resp.status_code} - {resp.text}")

        result = resp.json()
        if not result.get("success") or not result.get("url"):
            raise StorageError("Upload failed: server returned unsuccessful response")

        logger.info("Image uploaded → %s", result["url"])
        return result["url"]

    async def upload_images(self, images: list[ImageUpload], path: str = "posts") -> list[str]:
        """Upload concurrently; fails as a whole if any single upload fails."""
        return list(await asyncio.gather(*(self.upload_image(i, path) for i in images)))

    async def upload_avatar(self, image: ImageUpload, user_id: str) -> str:
        return await self.upload_image(image, f"avatars/{user_id}")

    async def delete_image(self, url: str) -> bool:
        """Ask the server to delete the file behind *url*.

        Returns False (and logs) on a non-2xx reply; raises ValueError if no
        filename can be extracted.
        """
        filename = url.rstrip("/").rsplit("/", 1)[-1]
        if not filename or filename == url.rstrip("/"):
            raise ValueError(f"Invalid URL: cannot extract filename from {url!r}")

        async with self._client() as client:
            resp = await client.delete(f"{self.base_url}/delete/{filename}")
        if resp.status_code >= 400:
            logger.warning("Delete of %s may have failed: %d", filename, resp.status_code)
            return False
        return True
