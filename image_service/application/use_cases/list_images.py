from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from image_service.domain.entities.image import ImageEntity
from image_service.domain.errors import MetadataUnavailableError, NotFoundError
from image_service.infrastructure.database.repositories.image_repository import ImageRepository
from image_service.infrastructure.storage.local_storage import FileInfo, LocalStorage

logger = structlog.get_logger(__name__)

SOURCE_METADATA = "metadata"
SOURCE_FILES = "files"


@dataclass
class ImageListing:
    source: str = SOURCE_METADATA
    images: list[ImageEntity] = field(default_factory=list)
    # Populated instead of ``images`` when the metadata store is unreachable
    files: list[FileInfo] = field(default_factory=list)


@dataclass
class ListImagesUseCase:
    storage: LocalStorage
    image_repo: ImageRepository

    def execute(self) -> ImageListing:
        try:
            return ImageListing(images=self.image_repo.list_all())
        except MetadataUnavailableError as exc:
            logger.warning("listing_from_files", error=str(exc))

        files: list[FileInfo] = []
        for name in self.storage.list():
            try:
                files.append(self.storage.describe(name))
            except NotFoundError:
                continue
        return ImageListing(source=SOURCE_FILES, files=files)
