from __future__ import annotations

from pathlib import Path
from typing import AsyncGenerator, Optional, Tuple

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings
from app.dependencies import get_app_settings, get_controller, get_gallery
from app.main import app
from conftest import FakeRemover, make_image_bytes
from image_workflow import ImageWorkflowController, Sample, SampleGallery

pytestmark = pytest.mark.anyio


async def _fetch(url: str) -> Tuple[bytes, Optional[str]]:
    return make_image_bytes((0, 128, 0)), "image/png"


@pytest.fixture
async def client(
    controller: ImageWorkflowController, tmp_path: Path
) -> AsyncGenerator[AsyncClient, None]:
    gallery = SampleGallery([Sample("sample-1", "Sample 1", "https://example.test/1.png")], fetcher=_fetch)
    settings = Settings(storage_root=tmp_path, max_upload_bytes=4096)
    app.dependency_overrides[get_controller] = lambda: controller
    app.dependency_overrides[get_gallery] = lambda: gallery
    app.dependency_overrides[get_app_settings] = lambda: settings
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    await controller.shutdown()


def _upload(content: bytes = b"", content_type: str = "image/png") -> dict:
    return {"file": ("photo.png", content or make_image_bytes(), content_type)}


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.json() == {"status": "ok"}


async def test_initial_state_is_empty(client: AsyncClient) -> None:
    response = await client.get("/api/v1/state")

    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "empty"
    assert body["can_remove"] is False
    assert body["source_url"] is None


@pytest.mark.parametrize("channel", ["upload", "drop"])
async def test_file_channels_load_source(client: AsyncClient, channel: str) -> None:
    response = await client.post(f"/api/v1/source/{channel}", files=_upload())

    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "source_ready"
    assert body["can_remove"] is True
    assert body["source_url"].endswith("/preview/source")

    preview = await client.get("/preview/source")
    assert preview.status_code == 200
    assert preview.headers["content-type"] == "image/png"


async def test_non_image_upload_is_rejected(client: AsyncClient) -> None:
    response = await client.post("/api/v1/source/upload", files=_upload(b"hello", "text/plain"))

    assert response.status_code == 400
    assert "Unsupported file type" in response.json()["detail"]
    assert (await client.get("/api/v1/state")).json()["state"] == "empty"


async def test_oversized_upload_is_rejected(client: AsyncClient) -> None:
    big = make_image_bytes(size=(400, 400), fmt="BMP")

    response = await client.post("/api/v1/source/drop", files=_upload(big, "image/bmp"))

    assert response.status_code == 400
    assert "too large" in response.json()["detail"]


async def test_full_workflow(client: AsyncClient, controller: ImageWorkflowController, remover: FakeRemover) -> None:
    await client.post("/api/v1/source/upload", files=_upload())

    response = await client.post("/api/v1/removal")
    assert response.status_code == 202
    assert response.json()["state"] == "processing"
    assert response.json()["remove_label"] == "Removing..."

    conflict = await client.post("/api/v1/removal")
    assert conflict.status_code == 409

    remover.release.set()
    await controller.wait_for_pending()

    body = (await client.get("/api/v1/state")).json()
    assert body["state"] == "result_ready"
    assert body["download_url"].endswith("/api/v1/download")
    assert (await client.get("/preview/result")).status_code == 200

    download = await client.get("/api/v1/download")
    assert download.status_code == 200
    assert download.headers["content-type"] == "image/png"
    assert 'filename="background-removed-image.png"' in download.headers["content-disposition"]
    assert download.content == controller.result.data


async def test_failed_removal_surfaces_error(
    client: AsyncClient, controller: ImageWorkflowController, remover: FakeRemover
) -> None:
    await client.post("/api/v1/source/upload", files=_upload())
    remover.fail_with()
    await client.post("/api/v1/removal")
    remover.release.set()
    await controller.wait_for_pending()

    body = (await client.get("/api/v1/state")).json()

    assert body["state"] == "source_ready"
    assert body["last_error"] == "simulated failure"
    assert body["can_remove"] is True


async def test_download_without_result_conflicts(client: AsyncClient) -> None:
    await client.post("/api/v1/source/upload", files=_upload())

    response = await client.get("/api/v1/download")

    assert response.status_code == 409
    assert (await client.get("/preview/result")).status_code == 404


async def test_sample_selection_and_clear(client: AsyncClient) -> None:
    listing = (await client.get("/api/v1/samples")).json()
    assert [sample["sample_id"] for sample in listing["samples"]] == ["sample-1"]

    first = (await client.post("/api/v1/source/samples/sample-1")).json()
    second = (await client.post("/api/v1/source/samples/sample-1")).json()
    assert second["state"] == "source_ready"
    assert first["source_id"] != second["source_id"]

    missing = await client.post("/api/v1/source/samples/nope")
    assert missing.status_code == 404

    cleared = (await client.delete("/api/v1/source")).json()
    assert cleared["state"] == "empty"
    assert cleared["can_clear"] is False
