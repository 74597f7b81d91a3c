from __future__ import annotations

from dataclasses import dataclass

import structlog

from image_service.domain.entities.image import ImageEntity
from image_service.domain.errors import ImageServiceError, NotFoundError
from image_service.infrastructure.database.repositories.image_repository import ImageRepository
from image_service.infrastructure.storage.local_storage import LocalStorage

logger = structlog.get_logger(__name__)


@dataclass
class DeleteImageUseCase:
    storage: LocalStorage
    image_repo: ImageRepository

    def execute(self, image_id: str) -> ImageEntity:
        """Delete an image row, its edit log and (best effort) its file."""
        entity = self.image_repo.get(image_id)
        if entity is None:
            raise NotFoundError(f"Image not found: {image_id}")

        try:
            self.storage.delete(entity.filename)
        except ImageServiceError as exc:
            logger.warning("file_delete_failed", image_id=image_id, filename=entity.filename, error=str(exc))

        if not self.image_repo.delete(image_id):
            # Removed concurrently between lookup and delete
            raise NotFoundError(f"Image not found: {image_id}")
        logger.info("image_deleted", image_id=image_id, patient_id=entity.patient_id)
        return entity
