"""Immutable image assets passed between the input channels, the controller and the remover."""

from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field

from .utils import SUPPORTED_FORMATS, build_data_uri, inspect_image, normalize_file_name


def _new_asset_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class ImageAsset:
    """Opaque handle to validated image bytes plus a display-ready reference.

    Assets are never mutated. Every user action produces a new asset with its own
    ``asset_id``, which is what the controller compares when deciding whether an
    asynchronous completion is stale.
    """

    data: bytes = field(repr=False)
    media_type: str
    filename: str
    width: int
    height: int
    asset_id: str = field(default_factory=_new_asset_id)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        media_type: str | None = None,
        filename: str | None = None,
    ) -> "ImageAsset":
        """Validate ``data`` and wrap it in a new asset.

        The media type is derived from the detected encoding; a declared
        ``media_type`` is only used by the input channels to reject non-images
        early and never overrides what Pillow finds.

        Raises
        ------
        InvalidInputError
            If the payload is empty or not a supported image encoding.
        """

        image_format, width, height = inspect_image(data)
        detected_type, extension = SUPPORTED_FORMATS[image_format]
        name = f"{normalize_file_name(filename or 'image')}{extension}"
        return cls(
            data=bytes(data),
            media_type=detected_type,
            filename=name,
            width=width,
            height=height,
        )

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        for media_type, extension in SUPPORTED_FORMATS.values():
            if media_type == self.media_type:
                return extension
        return ".bin"

    @property
    def data_uri(self) -> str:
        return build_data_uri(self.data, self.media_type)

    def renewed(self) -> "ImageAsset":
        """Return a copy of this asset with a fresh identity."""
        return dataclasses.replace(self, asset_id=_new_asset_id())

    def suggested_filename(self, stem: str) -> str:
        return f"{stem}{self.extension}"

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "filename": self.filename,
            "media_type": self.media_type,
            "width": self.width,
            "height": self.height,
            "size_bytes": self.size_bytes,
        }
