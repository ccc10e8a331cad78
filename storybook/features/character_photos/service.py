# storybook/features/character_photos/service.py
import uuid
from pathlib import PurePosixPath
from typing import Optional

from fastapi import HTTPException

from storybook.lib.blob_storage import BlobPublisher
from storybook.logger import get_logger

from .schemas import PhotoUploadResponse

log = get_logger(__name__)

MAX_PHOTO_BYTES = 5 * 1024 * 1024


def photo_object_name(filename: Optional[str]) -> str:
    """characters/{uuid}{ext}; the extension of the uploaded name is kept as-is."""
    ext = PurePosixPath(filename or "").suffix
    return f"characters/{uuid.uuid4()}{ext}"


def check_photo(content_type: Optional[str], size: int) -> None:
    if not (content_type or "").startswith("image/"):
        raise HTTPException(400, "File must be an image")
    if size > MAX_PHOTO_BYTES:
        raise HTTPException(400, "File size exceeds the 5MB limit")


async def upload_character_photo(
    publisher: BlobPublisher,
    *,
    filename: Optional[str],
    content_type: Optional[str],
    data: bytes,
) -> PhotoUploadResponse:
    check_photo(content_type, len(data))
    object_name = photo_object_name(filename)
    try:
        url = await publisher.put(object_name, data, content_type=content_type)
    except Exception as e:
        log.exception(f"character photo upload to {object_name} failed: {e}")
        raise HTTPException(500, "Failed to upload photo") from e
    log.info(f"character photo stored at {url} ({len(data)} bytes)")
    return PhotoUploadResponse(url=url)
