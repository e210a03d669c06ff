"""Input channels feeding user-supplied images into the workflow."""

from __future__ import annotations

import enum
import logging

from .assets import ImageAsset
from .exceptions import InvalidInputError
from .utils import validate_media_type

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 20 * 1024 * 1024


class InputChannel(str, enum.Enum):
    FILE_PICKER = "file_picker"
    DRAG_AND_DROP = "drag_and_drop"
    SAMPLE_GALLERY = "sample_gallery"


def asset_from_upload(
    data: bytes | None,
    content_type: str | None,
    filename: str | None = None,
    channel: InputChannel = InputChannel.FILE_PICKER,
    max_bytes: int | None = DEFAULT_MAX_UPLOAD_BYTES,
) -> ImageAsset:
    """Turn a picked or dropped file into a validated asset.

    The file picker and the drop zone share this contract: the file must declare
    an ``image/*`` type, must not be empty, and must decode as a supported image.

    Raises
    ------
    InvalidInputError
        If any of the checks fail.
    """

    if data is None:
        raise InvalidInputError("No file provided")
    validate_media_type(content_type)
    if max_bytes is not None and len(data) > max_bytes:
        raise InvalidInputError(f"File is too large ({len(data)} bytes, limit {max_bytes})")

    asset = ImageAsset.from_bytes(data, media_type=content_type, filename=filename)
    logger.debug("Accepted %s from %s as %s", filename or "file", channel.value, asset.asset_id)
    return asset
