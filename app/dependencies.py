from __future__ import annotations

from typing import Optional

from app.core.config import Settings, get_settings
from image_workflow import ImageWorkflowController, SampleGallery

_controller: Optional[ImageWorkflowController] = None
_gallery: Optional[SampleGallery] = None


def set_controller(controller: Optional[ImageWorkflowController]) -> None:
    global _controller
    _controller = controller


def get_controller() -> ImageWorkflowController:
    if _controller is None:
        raise RuntimeError("Workflow controller not initialized")
    return _controller


def set_gallery(gallery: Optional[SampleGallery]) -> None:
    global _gallery
    _gallery = gallery


def get_gallery() -> SampleGallery:
    if _gallery is None:
        raise RuntimeError("Sample gallery not initialized")
    return _gallery


def get_app_settings() -> Settings:
    return get_settings()
