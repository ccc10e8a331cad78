# storybook/lib/imaging.py
from __future__ import annotations

import base64
import io
from typing import Optional

from PIL import Image

from storybook import logger

log = logger.get_logger(__name__)

def sniff_mime(data: bytes) -> Optional[str]:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if data.startswith(b"GIF87a") or data.startswith(b"GIF89a"):
        return "image/gif"
    # WEBP: RIFF....WEBP
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None

def to_data_uri(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"

def ensure_png(data: bytes) -> bytes:
    """Re-encode non-PNG image bytes as PNG; stored objects are always .png."""
    if sniff_mime(data) == "image/png":
        return data
    with Image.open(io.BytesIO(data)) as im:
        if im.mode not in ("RGB", "RGBA"):
            im = im.convert("RGBA")
        out = io.BytesIO()
        im.save(out, format="PNG")
    log.debug(f"re-encoded {len(data)} byte image as PNG ({out.tell()} bytes)")
    return out.getvalue()
