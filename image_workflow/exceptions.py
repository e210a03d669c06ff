"""Custom exceptions for the image workflow."""

from __future__ import annotations


class ImageWorkflowError(Exception):
    """Base exception for all image workflow related errors."""


class InvalidInputError(ImageWorkflowError):
    """Raised when a payload is missing, empty or not a recognizable image."""


class InvalidStateError(ImageWorkflowError):
    """Raised when an operation is invoked while its preconditions are unmet."""


class ServiceError(ImageWorkflowError):
    """Raised when the background removal collaborator fails."""
