"""Utility helpers converting between PIL images and session images."""

from __future__ import annotations

import io
from typing import Any, Tuple

from PIL import Image as PILImage

from modules.state.models import Image

_PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}


def pil_format_for(mime_type: str) -> str:
    """Return the Pillow format name for a MIME type."""
    try:
        return _PIL_FORMATS[mime_type.lower()]
    except KeyError as exc:
        raise ValueError(f"Unsupported image MIME type: {mime_type}") from exc


def encode_image(image: Any, mime_type: str = "image/jpeg") -> Image:
    """Encode a PIL image into a session image."""
    fmt = pil_format_for(mime_type)
    if fmt == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return Image(data=buffer.getvalue(), mime_type=mime_type)


def decode_image(image: Image) -> PILImage.Image:
    """Decode a session image into an RGB PIL image."""
    with PILImage.open(io.BytesIO(image.data)) as opened:
        return opened.convert("RGB")


def generate_thumbnail(image: Image, max_size: Tuple[int, int] = (256, 256)) -> PILImage.Image:
    """Create a thumbnail suitable for history previews."""
    thumbnail = decode_image(image)
    thumbnail.thumbnail(max_size)
    return thumbnail
