"""Utility helpers for the image workflow."""

from __future__ import annotations

import base64
import io
import re
from pathlib import Path
from typing import Iterable

from PIL import Image, UnidentifiedImageError

from .exceptions import InvalidInputError

# Pillow format name -> (media type, file extension)
SUPPORTED_FORMATS = {
    "PNG": ("image/png", ".png"),
    "JPEG": ("image/jpeg", ".jpg"),
    "WEBP": ("image/webp", ".webp"),
    "GIF": ("image/gif", ".gif"),
    "BMP": ("image/bmp", ".bmp"),
    "TIFF": ("image/tiff", ".tiff"),
}


def normalize_file_name(path: str | Path) -> str:
    """Normalize an arbitrary file path or name into a filesystem friendly stem.

    The result is lowercase, stripped of leading/trailing underscores, and only
    contains ASCII letters, numbers, hyphens, and underscores.
    """

    stem = Path(path).stem
    normalized = re.sub(r"[^a-zA-Z0-9_-]+", "_", stem).strip("_").lower()
    return normalized or "image"


def validate_media_type(content_type: str | None, allowed_prefixes: Iterable[str] = ("image/",)) -> str:
    """Validate that a declared content type is an image type and return it.

    Raises
    ------
    InvalidInputError
        If the content type is missing or does not declare an image.
    """

    declared = (content_type or "").split(";", 1)[0].strip().lower()
    if not declared or not any(declared.startswith(prefix) for prefix in allowed_prefixes):
        raise InvalidInputError(f"Unsupported file type '{declared or 'unknown'}'. Expected an image")
    return declared


def inspect_image(data: bytes) -> tuple[str, int, int]:
    """Detect the encoding of ``data`` and return ``(format, width, height)``.

    Raises
    ------
    InvalidInputError
        If the payload is empty, not an image, or in an unsupported format.
    """

    if not data:
        raise InvalidInputError("Image payload is empty")

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
            image_format = image.format
            width, height = image.size
    except Image.DecompressionBombError as exc:
        raise InvalidInputError("Image dimensions exceed the allowed limit") from exc
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        raise InvalidInputError("Payload is not a recognizable image") from exc

    if image_format not in SUPPORTED_FORMATS:
        allowed = ", ".join(sorted(SUPPORTED_FORMATS))
        raise InvalidInputError(f"Unsupported image format '{image_format}'. Allowed formats: {allowed}")
    return image_format, width, height


def ensure_rgba(image: Image.Image) -> Image.Image:
    """Ensure that a Pillow image is in RGBA mode."""

    if image.mode == "RGBA":
        return image
    return image.convert("RGBA")


def image_to_png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    ensure_rgba(image).save(buffer, format="PNG")
    return buffer.getvalue()


def to_rgba_png(data: bytes) -> bytes:
    """Re-encode arbitrary image bytes as an RGBA PNG."""

    with Image.open(io.BytesIO(data)) as image:
        return image_to_png_bytes(image)


def build_data_uri(data: bytes, media_type: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{encoded}"
