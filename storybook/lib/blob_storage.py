# storybook/lib/blob_storage.py
from __future__ import annotations

import asyncio
import uuid
from typing import Callable, Optional

from google.cloud import storage

from storybook.config import config
from storybook import logger

log = logger.get_logger(__name__)

_storage = None
def _client():
    global _storage
    if _storage is None:
        _storage = storage.Client()
    return _storage


def page_object_name(story_id: str, page_index: int, *, prefix: str = "page") -> str:
    """stories/{storyId}/{prefix}-{n}-{uuid}.png; fresh on every call so retries never collide."""
    return f"stories/{story_id}/{prefix}-{page_index + 1}-{uuid.uuid4()}.png"


class BlobPublisher:
    """
    Uploads illustration bytes to a public GCS bucket. The bucket is expected to
    grant public read (uniform bucket-level access), so the object URL is stable.
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        *,
        public_base_url: Optional[str] = None,
        client_factory: Callable[[], storage.Client] = _client,
    ):
        self.bucket = bucket if bucket is not None else config.gcs_bucket
        self.public_base_url = (public_base_url or config.gcs_public_base_url).rstrip("/")
        self._client_factory = client_factory

    def public_url(self, object_name: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{object_name}"

    def _put(self, object_name: str, data: bytes, content_type: str) -> str:
        bucket = self._client_factory().bucket(self.bucket)
        blob = bucket.blob(object_name)
        blob.cache_control = "public, max-age=31536000"
        blob.upload_from_string(data, content_type=content_type)
        return self.public_url(object_name)

    async def put(self, object_name: str, data: bytes, *, content_type: str = "image/png") -> str:
        """Upload and return the public URL; raises on failure."""
        if not self.bucket:
            raise RuntimeError("GCS_BUCKET not configured")
        return await asyncio.to_thread(self._put, object_name, data, content_type)

    async def publish_page_image(
        self,
        data: bytes,
        *,
        story_id: str,
        page_index: int,
        prefix: str = "page",
    ) -> Optional[str]:
        """Upload one page illustration. Returns the public URL, or None on any failure."""
        object_name = page_object_name(story_id, page_index, prefix=prefix)
        log.info(f"[story {story_id}] page {page_index + 1}: uploading {len(data)} bytes to {object_name}")
        try:
            url = await self.put(object_name, data, content_type="image/png")
        except Exception as e:
            log.exception(f"[story {story_id}] page {page_index + 1}: upload of {object_name} failed: {e}")
            return None
        log.info(f"[story {story_id}] page {page_index + 1}: uploaded to {url}")
        return url
