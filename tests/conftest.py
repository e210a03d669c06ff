from __future__ import annotations

import asyncio
import io
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from PIL import Image

from image_workflow import BackgroundRemover, ImageAsset, ImageWorkflowController, ServiceError


def make_image_bytes(
    color: tuple[int, int, int] = (255, 0, 0),
    size: tuple[int, int] = (10, 10),
    fmt: str = "PNG",
) -> bytes:
    image = Image.new("RGB", size, color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_asset(color: tuple[int, int, int] = (255, 0, 0), filename: str = "photo.png") -> ImageAsset:
    return ImageAsset.from_bytes(make_image_bytes(color), filename=filename)


def transparent_result(asset: ImageAsset) -> ImageAsset:
    with Image.open(io.BytesIO(asset.data)) as image:
        transparent = Image.new("RGBA", image.size, (0, 0, 0, 0))
    buffer = io.BytesIO()
    transparent.save(buffer, format="PNG")
    return ImageAsset.from_bytes(buffer.getvalue(), filename="result.png")


class FakeRemover(BackgroundRemover):
    """Collaborator whose completions are released by the test.

    Each call waits on ``release`` unless ``gated`` is False, then either
    raises the configured error or returns a transparent copy of its input.
    """

    def __init__(self, gated: bool = True) -> None:
        self.gated = gated
        self.release = asyncio.Event()
        self.error: Optional[Exception] = None
        self.call_errors: Dict[int, Exception] = {}
        self.calls: List[ImageAsset] = []
        self.results: List[ImageAsset] = []

    async def remove_background(self, asset: ImageAsset) -> ImageAsset:
        index = len(self.calls)
        self.calls.append(asset)
        if self.gated:
            await self.release.wait()
        error = self.call_errors.get(index, self.error)
        if error is not None:
            raise error
        result = transparent_result(asset)
        self.results.append(result)
        return result

    def fail_with(self, error: Exception | None = None) -> None:
        self.error = error or ServiceError("simulated failure")

    def fail_call(self, index: int, error: Exception | None = None) -> None:
        self.call_errors[index] = error or ServiceError("simulated failure")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def remover() -> FakeRemover:
    return FakeRemover()


@pytest.fixture
def errors() -> List[ServiceError]:
    return []


@pytest.fixture
def controller(remover: FakeRemover, errors: List[ServiceError], tmp_path: Path) -> ImageWorkflowController:
    return ImageWorkflowController(
        remover=remover,
        download_dir=tmp_path / "downloads",
        error_handler=errors.append,
    )
