"""Background removal collaborators wrapping rembg and Pillow utilities."""

from __future__ import annotations

import abc
import asyncio
import logging
from pathlib import Path
from typing import Callable

from PIL import Image, UnidentifiedImageError

from .assets import ImageAsset
from .exceptions import ServiceError
from .utils import ensure_rgba, image_to_png_bytes, to_rgba_png

logger = logging.getLogger(__name__)

RemoverFunc = Callable[[bytes], "Image.Image | bytes | bytearray"]


class BackgroundRemover(abc.ABC):
    """Asynchronous capability turning a source asset into a background-free asset."""

    @abc.abstractmethod
    async def remove_background(self, asset: ImageAsset) -> ImageAsset:
        """Return a new asset with the background removed.

        Raises
        ------
        ServiceError
            If the removal could not be performed.
        """


class CallableRemover(BackgroundRemover):
    """Adapts a blocking ``bytes -> image`` function into a :class:`BackgroundRemover`.

    The function receives the source re-encoded as an RGBA PNG and runs in a
    worker thread so the event loop keeps serving user events.
    """

    def __init__(self, func: RemoverFunc) -> None:
        self._func = func

    async def remove_background(self, asset: ImageAsset) -> ImageAsset:
        return await asyncio.to_thread(self._remove_sync, asset)

    def _remove_sync(self, asset: ImageAsset) -> ImageAsset:
        try:
            remove_input = to_rgba_png(asset.data)
        except (UnidentifiedImageError, OSError) as exc:
            raise ServiceError("Source image could not be prepared for background removal") from exc

        try:
            output = self._func(remove_input)
        except Exception as exc:
            raise ServiceError("Background removal failed") from exc

        png_bytes = self._normalize_output(output)
        return ImageAsset.from_bytes(png_bytes, media_type="image/png", filename=f"{Path(asset.filename).stem}_nobg")

    @staticmethod
    def _normalize_output(output: object) -> bytes:
        if isinstance(output, Image.Image):
            return image_to_png_bytes(ensure_rgba(output))
        if isinstance(output, (bytes, bytearray)):
            try:
                return to_rgba_png(bytes(output))
            except (UnidentifiedImageError, OSError) as exc:
                raise ServiceError("Background removal returned an unreadable image") from exc

        raise ServiceError("Background removal function returned unsupported data type")


class RembgRemover(CallableRemover):
    """Removes backgrounds locally with a cached rembg model session."""

    def __init__(self, model_name: str = "u2net") -> None:
        super().__init__(self._remove)
        self.model_name = model_name
        self._session = None

    def warm_up(self) -> None:
        """Load the model session, downloading the model assets on first run."""
        self._get_session()

    def _get_session(self):
        if self._session is None:
            from rembg import new_session

            logger.info("Loading rembg model '%s'", self.model_name)
            self._session = new_session(model_name=self.model_name)
        return self._session

    def _remove(self, image_bytes: bytes) -> bytes:
        from rembg import remove

        return remove(image_bytes, session=self._get_session())
