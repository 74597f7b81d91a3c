from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from image_service.domain.entities.image import ImageEntity
from image_service.domain.errors import ImageServiceError, NotFoundError, ValidationError
from image_service.infrastructure.database.repositories.image_repository import ImageRepository
from image_service.infrastructure.storage.local_storage import LocalStorage, StoredFile

logger = structlog.get_logger(__name__)


@dataclass
class UploadImageUseCase:
    storage: LocalStorage
    image_repo: ImageRepository

    def execute(
        self,
        stored: StoredFile | None,
        patient_id: str | None,
        user_id: str | None,
        username: str | None = None,
        description: str | None = None,
        tags: str | None = None,
    ) -> ImageEntity:
        """
        Register an uploaded file as a new original image.

        The file is already on disk when this runs. If a required field is
        missing it is removed again before raising, so a rejected upload never
        leaves a file behind. A metadata failure after validation is logged and
        re-raised without removing the file.
        """
        if stored is None:
            raise ValidationError("No file uploaded")
        if not patient_id or not patient_id.strip():
            self._discard(stored)
            raise ValidationError("Patient ID is required")
        if not user_id or not user_id.strip():
            self._discard(stored)
            raise ValidationError("User ID is required")

        entity = ImageEntity(
            id=stored.id,
            filename=stored.filename,
            original_filename=stored.original_filename,
            path=stored.path,
            patient_id=patient_id.strip(),
            uploaded_by_user_id=user_id.strip(),
            uploaded_by_username=username or "Unknown",
            upload_date=datetime.now(UTC),
            file_size=stored.size,
            mime_type=stored.mime_type,
            description=description or None,
            tags=tags or None,
            is_edited=False,
            parent_image_id=None,
        )
        try:
            entity = self.image_repo.create(entity)
        except ImageServiceError:
            logger.error("metadata_write_failed", filename=stored.filename, patient_id=patient_id)
            raise
        logger.info(
            "image_uploaded",
            image_id=entity.id,
            filename=entity.filename,
            patient_id=entity.patient_id,
            size=entity.file_size,
        )
        return entity

    def _discard(self, stored: StoredFile) -> None:
        try:
            self.storage.delete(stored.filename)
        except NotFoundError:
            pass
        except ImageServiceError as exc:
            logger.warning("rejected_upload_cleanup_failed", filename=stored.filename, error=str(exc))
