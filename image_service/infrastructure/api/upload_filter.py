from __future__ import annotations

import mimetypes
from pathlib import Path

import structlog
from fastapi import UploadFile

from image_service.config import Settings
from image_service.domain.errors import PayloadTooLargeError, ValidationError
from image_service.infrastructure.storage.local_storage import LocalStorage, StoredFile

logger = structlog.get_logger(__name__)


def accept_upload(file: UploadFile | None, settings: Settings, storage: LocalStorage) -> StoredFile | None:
    """Check type and size of a multipart upload and write it to the store.

    Returns None when the request carried no file. Rejected files are never
    written.
    """
    if file is None or not file.filename:
        return None

    mime_type = (file.content_type or "").lower()
    if mime_type not in settings.allowed_mime_types:
        logger.info("upload_rejected", reason="type", mime_type=mime_type, original_filename=file.filename)
        raise ValidationError(
            f"Invalid file type {mime_type or 'unknown'}. Allowed: {', '.join(settings.allowed_mime_types)}"
        )

    data = file.file.read(settings.max_file_size + 1)
    if len(data) > settings.max_file_size:
        logger.info("upload_rejected", reason="size", original_filename=file.filename)
        raise PayloadTooLargeError(f"File too large. Maximum size is {settings.max_file_size} bytes")

    ext = Path(file.filename).suffix.lower() or mimetypes.guess_extension(mime_type) or ""
    stored = storage.put(data, ext)
    return StoredFile(
        id=stored.id,
        filename=stored.filename,
        path=stored.path,
        original_filename=file.filename,
        size=stored.size,
        mime_type=mime_type,
    )
