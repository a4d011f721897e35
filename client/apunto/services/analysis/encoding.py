from __future__ import annotations

"""client/apunto/services/analysis/encoding.py

Turns a local image reference into the data URI sent to the backend.
"""

import asyncio
import base64
import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

from apunto.services.diagnostics.error_classifier import ImageEncodeError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"

MIME_TYPES = {
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def _to_path(uri: str) -> Path:
    if uri.startswith("file://"):
        return Path(unquote(urlparse(uri).path))
    return Path(uri)


def guess_mime_type(uri: str) -> str:
    """MIME type from the file extension; unknown extensions fall back to JPEG."""
    suffix = Path(urlparse(uri).path if "://" in uri else uri).suffix.lower()
    return MIME_TYPES.get(suffix, DEFAULT_MIME_TYPE)


def image_to_data_uri(uri: str) -> str:
    try:
        raw = _to_path(uri).read_bytes()
    except (OSError, ValueError) as exc:
        logger.error("Could not read image %s: %s", uri, exc)
        raise ImageEncodeError(f"could not read image: {uri}") from exc

    encoded = base64.b64encode(raw).decode("ascii")
    return f"data:{guess_mime_type(uri)};base64,{encoded}"


async def encode_image(uri: str) -> str:
    return await asyncio.to_thread(image_to_data_uri, uri)
