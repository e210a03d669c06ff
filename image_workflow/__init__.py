"""Public API for the image workflow package."""

from .assets import ImageAsset
from .channels import InputChannel, asset_from_upload
from .controller import (
    DOWNLOAD_STEM,
    ImageWorkflowController,
    ProcessingRequest,
    ViewState,
    WorkflowState,
)
from .exceptions import ImageWorkflowError, InvalidInputError, InvalidStateError, ServiceError
from .remover import BackgroundRemover, CallableRemover, RembgRemover
from .samples import DEFAULT_SAMPLES, Sample, SampleGallery
from . import utils

__all__ = [
    "BackgroundRemover",
    "CallableRemover",
    "DEFAULT_SAMPLES",
    "DOWNLOAD_STEM",
    "ImageAsset",
    "ImageWorkflowController",
    "ImageWorkflowError",
    "InputChannel",
    "InvalidInputError",
    "InvalidStateError",
    "ProcessingRequest",
    "RembgRemover",
    "Sample",
    "SampleGallery",
    "ServiceError",
    "ViewState",
    "WorkflowState",
    "asset_from_upload",
    "utils",
]
