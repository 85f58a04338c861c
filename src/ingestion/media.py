"""Embedded image URL extraction."""

from __future__ import annotations

import re
from typing import NamedTuple

_IMAGE_URL_RE = re.compile(
    r"(https?://[^\s)]+?\.(?:jpg|jpeg|png|gif|webp|svg|bmp|tiff|ico))(?:[)\s.,;:!?]|$)",
    re.IGNORECASE,
)
_IMAGE_COLUMN_RE = re.compile(r"\.(png|jpe?g|gif|webp|svg|bmp|tiff|ico)(\?.*)?$", re.IGNORECASE)
_SPACES_RE = re.compile(r"[ \t]{2,}")

_MEDIA_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "ico": "image/x-icon",
}


class MediaExtraction(NamedTuple):
    text: str
    url: str | None
    media_type: str | None


def media_type_for(url: str) -> str:
    extension = url.rsplit(".", 1)[-1].lower()
    return _MEDIA_TYPES.get(extension, "image")


def extract_media(text: str | None) -> MediaExtraction:
    """Split the first image URL out of question text."""
    source = text or ""
    match = _IMAGE_URL_RE.search(source)
    if not match:
        return MediaExtraction(text=source.strip(), url=None, media_type=None)
    url = match.group(1)
    cleaned = source[: match.start()] + " " + source[match.end() :]
    cleaned = _SPACES_RE.sub(" ", cleaned).strip()
    return MediaExtraction(text=cleaned, url=url, media_type=media_type_for(url))


def media_from_column(value: str | None) -> tuple[str | None, str | None]:
    """Media pair for an explicit image column."""
    raw = (value or "").strip()
    if not raw:
        return None, None
    if _IMAGE_COLUMN_RE.search(raw) or raw.startswith(("http", "data:image/")):
        return raw, "image"
    return raw, None


__all__ = ["MediaExtraction", "extract_media", "media_from_column", "media_type_for"]
