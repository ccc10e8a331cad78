# storybook/lib/media.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import unquote, urlparse

import requests

from storybook.config import config
from storybook.errors import MediaFetchError
from storybook.logger import get_logger

log = get_logger(__name__)

_MIME_BY_EXT = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}
DEFAULT_MIME = "image/jpeg"


@dataclass(frozen=True)
class FetchedMedia:
    url: str
    data: bytes
    mime_type: str


def infer_mime_from_url(url: str) -> str:
    """Guess an image MIME type from the URL path extension; JPEG when unknown."""
    path = unquote(urlparse(url).path)
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return DEFAULT_MIME
    ext = name.rsplit(".", 1)[-1].lower()
    return _MIME_BY_EXT.get(ext, DEFAULT_MIME)


def _resolve_mime(header_value: Optional[str], url: str) -> str:
    mime = (header_value or "").split(";", 1)[0].strip().lower()
    if not mime or mime == "application/octet-stream":
        return infer_mime_from_url(url)
    return mime


def _download(url: str, timeout: float) -> FetchedMedia:
    try:
        resp = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise MediaFetchError(url, str(e)) from e
    if not resp.ok:
        raise MediaFetchError(url, f"{resp.status_code} {resp.reason}")
    mime = _resolve_mime(resp.headers.get("Content-Type"), url)
    return FetchedMedia(url=url, data=resp.content, mime_type=mime)


async def fetch_image(url: str, *, timeout: Optional[float] = None) -> FetchedMedia:
    """Download a remote image without blocking the event loop."""
    media = await asyncio.to_thread(_download, url, timeout or config.media_fetch_timeout_seconds)
    log.info(f"fetched {url} ({media.mime_type}, {len(media.data)} bytes)")
    return media


async def fetch_images(urls: List[str], *, timeout: Optional[float] = None) -> List[FetchedMedia]:
    """Fetch every URL, preserving order; the first failure is raised."""
    return list(await asyncio.gather(*(fetch_image(u, timeout=timeout) for u in urls)))


async def fetch_image_or_none(url: str, *, timeout: Optional[float] = None) -> Optional[FetchedMedia]:
    try:
        return await fetch_image(url, timeout=timeout)
    except MediaFetchError as e:
        log.warning(str(e))
        return None
