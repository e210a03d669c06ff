from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI

from app.api.routes import api_router, preview_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_controller, get_gallery, set_controller, set_gallery
from image_workflow import ImageWorkflowController, RembgRemover, SampleGallery

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title=settings.app_name, version="1.0.0")


async def _warm_up_remover(remover: RembgRemover) -> None:
    """Download required rembg model assets on first run."""
    try:
        await asyncio.to_thread(remover.warm_up)
    except Exception:  # pragma: no cover - best effort warm-up
        logger.exception("Failed to initialize rembg model session.")


@app.on_event("startup")
async def on_startup() -> None:
    settings.ensure_directories()
    remover = RembgRemover(model_name=settings.rembg_model_name)
    set_controller(
        ImageWorkflowController(
            remover=remover,
            download_dir=settings.download_dir,
            removal_timeout=settings.removal_timeout,
        )
    )
    gallery = SampleGallery(timeout=settings.sample_fetch_timeout)
    set_gallery(gallery)
    await _warm_up_remover(remover)
    if settings.prefetch_samples:
        await gallery.prefetch()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_controller().shutdown()
    await get_gallery().aclose()
    set_controller(None)
    set_gallery(None)


@app.get("/health", tags=["Health"])
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(api_router)
app.include_router(preview_router)
