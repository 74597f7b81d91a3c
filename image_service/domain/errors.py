"""Error taxonomy shared by every layer.

Each error carries the HTTP status the API layer reports for it.
"""
from __future__ import annotations


class ImageServiceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ImageServiceError):
    """A required field is missing or a value is not acceptable."""

    status_code = 400


class InvalidShapeError(ValidationError):
    pass


class PayloadTooLargeError(ValidationError):
    status_code = 413


class NotFoundError(ImageServiceError):
    status_code = 404


class StorageWriteError(ImageServiceError):
    pass


class StorageReadError(ImageServiceError):
    pass


class ConstraintViolation(ImageServiceError):
    """Duplicate id/filename, missing patient or missing foreign key."""


class TransformError(ImageServiceError):
    pass


class MetadataUnavailableError(ImageServiceError):
    """The metadata store could not be reached."""
