"""
civica.api.routes.media — Image uploads for posts and avatars
===============================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, UploadFile

from civica.api.deps import CurrentUser, get_storage_client
from civica.errors import StorageError
from civica.services.storage_service import ImageUpload, StorageClient

router = APIRouter(prefix="/media", tags=["media"])
logger = logging.getLogger(__name__)


async def _read(file: UploadFile) -> ImageUpload:
    return ImageUpload(
        content=await file.read(),
        filename=file.filename or "image.jpg",
        content_type=file.content_type,
    )


async def _store(storage: StorageClient, image: ImageUpload, path: str) -> str:
    try:
        return await storage.upload_image(image, path)
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    except StorageError as exc:
        logger.warning("Upload to %s failed: %s", path, exc)
        raise HTTPException(502, "Storage upload failed") from exc


@router.post("/images", status_code=201)
async def upload_post_image(
    file: UploadFile,
    user: CurrentUser,
    storage: StorageClient = Depends(get_storage_client),
):
    """Upload one post image and return its public URL."""
    return {"url": await _store(storage, await _read(file), "posts")}


@router.post("/avatar", status_code=201)
async def upload_avatar(
    file: UploadFile,
    user: CurrentUser,
    storage: StorageClient = Depends(get_storage_client),
):
    return {"url": await _store(storage, await _read(file), f"avatars/{user['sub']}")}
