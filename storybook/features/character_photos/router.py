# storybook/features/character_photos/router.py
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from storybook.config import config
from storybook.lib.blob_storage import BlobPublisher

from .schemas import PhotoUploadResponse
from .service import MAX_PHOTO_BYTES, upload_character_photo

router = APIRouter(prefix="/api", tags=["character-photos"])


def get_photo_publisher() -> BlobPublisher:
    if not config.gcs_bucket:
        raise HTTPException(500, "Server configuration error: Missing blob storage bucket")
    return BlobPublisher()


@router.post("/upload-character-photo", response_model=PhotoUploadResponse)
async def upload_character_photo_endpoint(
    file: Optional[UploadFile] = File(None),
    publisher: BlobPublisher = Depends(get_photo_publisher),
):
    if file is None:
        raise HTTPException(400, "No file provided or invalid file")
    # one byte past the limit is enough to reject without buffering the rest
    data = await file.read(MAX_PHOTO_BYTES + 1)
    return await upload_character_photo(
        publisher,
        filename=file.filename,
        content_type=file.content_type,
        data=data,
    )
