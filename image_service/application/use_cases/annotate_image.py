from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import structlog

from image_service.domain.entities.image import ImageEntity
from image_service.domain.entities.image_edit import EDIT_ADD_TEXT, EDIT_DRAW, ImageEditEntity
from image_service.domain.errors import ImageServiceError
from image_service.domain.services.overlay_service import (
    OverlayInstruction,
    OverlayService,
    ShapeOverlay,
    TextOverlay,
)
from image_service.infrastructure.database.repositories.edit_repository import EditRepository
from image_service.infrastructure.database.repositories.image_repository import ImageRepository
from image_service.infrastructure.storage.local_storage import LocalStorage

logger = structlog.get_logger(__name__)

_EDIT_MARKERS = {
    EDIT_ADD_TEXT: "(edited: text added)",
    EDIT_DRAW: "(edited: drawing added)",
}


def _given(**kwargs):
    # Omitted fields fall back to the overlay defaults
    return {k: v for k, v in kwargs.items() if v is not None}


@dataclass
class AnnotationResult:
    id: str
    filename: str
    edit_type: str
    params: dict
    # None when the source file had no metadata row
    image: ImageEntity | None = None
    edit: ImageEditEntity | None = None

    @property
    def url(self) -> str:
        return f"/images/{self.filename}"

    @property
    def recorded(self) -> bool:
        return self.image is not None


@dataclass
class AnnotateImageUseCase:
    storage: LocalStorage
    image_repo: ImageRepository
    edit_repo: EditRepository
    overlay: OverlayService

    def add_text(
        self,
        filename: str,
        text: str | None,
        x: float | None = None,
        y: float | None = None,
        font_size: float | None = None,
        color: str | None = None,
        user_id: str | None = None,
    ) -> AnnotationResult:
        overlay = TextOverlay(
            text=text or "",
            **_given(x=x, y=y, font_size=font_size, color=color),
        )
        return self.execute(filename, overlay, EDIT_ADD_TEXT, user_id)

    def add_shape(
        self,
        filename: str,
        shape: str | None,
        x: float | None = None,
        y: float | None = None,
        width: float | None = None,
        height: float | None = None,
        color: str | None = None,
        stroke_width: int | None = None,
        user_id: str | None = None,
    ) -> AnnotationResult:
        overlay = ShapeOverlay(
            shape=shape or "",
            width=width,
            height=height,
            **_given(x=x, y=y, color=color, stroke_width=stroke_width),
        )
        return self.execute(filename, overlay, EDIT_DRAW, user_id)

    def execute(
        self,
        filename: str,
        instruction: OverlayInstruction,
        edit_type: str,
        user_id: str | None = None,
    ) -> AnnotationResult:
        """
        Render an overlay onto a stored image and persist it as a new image.

        The instruction has already been validated when it was constructed, so
        nothing is written for an invalid request. The result gets a fresh
        filename with the source extension. When the source has a metadata row
        a derived row and an edit log entry are recorded; otherwise the file is
        still produced and returned without lineage.
        """
        source_bytes = self.storage.get(filename)
        ext = Path(filename).suffix or ".png"
        result_bytes = self.overlay.apply_overlay(source_bytes, instruction, ext)
        stored = self.storage.put(result_bytes, ext)
        params = instruction.to_params()

        source = self.image_repo.get_by_filename(filename)
        if source is None:
            logger.warning(
                "edit_without_source_metadata",
                source_filename=filename,
                filename=stored.filename,
                edit_type=edit_type,
            )
            return AnnotationResult(
                id=stored.id, filename=stored.filename, edit_type=edit_type, params=params
            )

        description = " ".join(p for p in (source.description, _EDIT_MARKERS[edit_type]) if p)
        derived = ImageEntity(
            id=stored.id,
            filename=stored.filename,
            original_filename=source.original_filename,
            path=stored.path,
            patient_id=source.patient_id,
            uploaded_by_user_id=source.uploaded_by_user_id,
            uploaded_by_username=source.uploaded_by_username,
            upload_date=datetime.now(UTC),
            file_size=stored.size,
            mime_type=source.mime_type,
            description=description,
            tags=source.tags,
            is_edited=True,
            parent_image_id=source.id,
        )
        try:
            derived = self.image_repo.create(derived)
            edit = self.edit_repo.create(
                image_id=derived.id,
                edit_type=edit_type,
                edit_data=params,
                edited_by_user_id=user_id or source.uploaded_by_user_id,
            )
        except ImageServiceError:
            logger.error("metadata_write_failed", filename=stored.filename, parent_image_id=source.id)
            raise
        logger.info(
            "image_edited",
            image_id=derived.id,
            parent_image_id=source.id,
            edit_type=edit_type,
            patient_id=derived.patient_id,
        )
        return AnnotationResult(
            id=derived.id,
            filename=derived.filename,
            edit_type=edit_type,
            params=params,
            image=derived,
            edit=edit,
        )
