from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from image_service.application.use_cases.annotate_image import AnnotationResult
from image_service.domain.entities.image import ImageEntity
from image_service.infrastructure.storage.local_storage import FileInfo


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ImageMetadata(_CamelModel):
    """Metadata row for an original or derived image."""
    id: str = Field(..., description="Unique identifier of the image", examples=["3f2a9c0e8b6d4e1f9a7b5c3d2e1f0a9b"])
    filename: str = Field(..., description="Generated storage filename", examples=["3f2a9c0e8b6d4e1f9a7b5c3d2e1f0a9b.png"])
    original_filename: str | None = Field(None, alias="originalFilename", description="Client-supplied filename at upload time")
    path: str = Field(..., description="Location of the file on the server")
    patient_id: str = Field(..., alias="patientId", description="Patient the image belongs to")
    uploaded_by_user_id: str = Field(..., alias="uploadedByUserId")
    uploaded_by_username: str | None = Field(None, alias="uploadedByUsername")
    uploaded_by: str | None = Field(None, alias="uploadedBy", description="Display name of the uploader")
    upload_date: datetime = Field(..., alias="uploadDate")
    file_size: int | None = Field(None, alias="fileSize", description="Size of the file in bytes")
    mime_type: str | None = Field(None, alias="mimeType", examples=["image/png"])
    description: str | None = None
    tags: str | None = None
    is_edited: bool = Field(False, alias="isEdited", description="True if produced by a text or drawing edit")
    parent_image_id: str | None = Field(None, alias="parentImageId", description="Image this one was derived from")
    url: str = Field(..., description="Retrieval URL of the image file", examples=["/images/3f2a9c0e.png"])
    thumbnail_url: str = Field(..., alias="thumbnailUrl")

    @classmethod
    def from_entity(cls, entity: ImageEntity) -> ImageMetadata:
        return cls(
            id=entity.id,
            filename=entity.filename,
            original_filename=entity.original_filename,
            path=entity.path,
            patient_id=entity.patient_id,
            uploaded_by_user_id=entity.uploaded_by_user_id,
            uploaded_by_username=entity.uploaded_by_username,
            uploaded_by=entity.uploaded_by_username,
            upload_date=entity.upload_date,
            file_size=entity.file_size,
            mime_type=entity.mime_type,
            description=entity.description,
            tags=entity.tags,
            is_edited=entity.is_edited,
            parent_image_id=entity.parent_image_id,
            url=entity.url,
            thumbnail_url=entity.url,
        )


class StoredFileMetadata(_CamelModel):
    """A file in the upload directory listed without its metadata row."""
    filename: str
    file_size: int = Field(..., alias="fileSize")
    upload_date: datetime = Field(..., alias="uploadDate", description="File modification time")
    url: str
    thumbnail_url: str = Field(..., alias="thumbnailUrl")

    @classmethod
    def from_file(cls, info: FileInfo) -> StoredFileMetadata:
        url = f"/images/{info.filename}"
        return cls(
            filename=info.filename,
            file_size=info.size,
            upload_date=info.modified_at,
            url=url,
            thumbnail_url=url,
        )


class UploadImageResponse(_CamelModel):
    """Response model for a successful upload."""
    message: str = "Image uploaded successfully"
    id: str
    filename: str
    patient_id: str = Field(..., alias="patientId")
    uploaded_by: str | None = Field(None, alias="uploadedBy")
    upload_date: datetime = Field(..., alias="uploadDate")
    url: str
    image: ImageMetadata

    @classmethod
    def from_entity(cls, entity: ImageEntity) -> UploadImageResponse:
        return cls(
            id=entity.id,
            filename=entity.filename,
            patient_id=entity.patient_id,
            uploaded_by=entity.uploaded_by_username,
            upload_date=entity.upload_date,
            url=entity.url,
            image=ImageMetadata.from_entity(entity),
        )


class ListImagesResponse(_CamelModel):
    images: list[ImageMetadata | StoredFileMetadata] = Field(..., description="Newest first")
    total: int = Field(..., ge=0)
    source: str = Field("metadata", description="'metadata', or 'files' when listed from the upload directory")


class PatientImagesResponse(_CamelModel):
    patient_id: str = Field(..., alias="patientId")
    images: list[ImageMetadata] = Field(..., description="Newest upload first")


class _EditRequest(_CamelModel):
    x: float | None = Field(None, description="Horizontal position in pixels")
    y: float | None = Field(None, description="Vertical position in pixels")
    color: str | None = Field(None, description="Any CSS color name or hex value", examples=["red", "#00ff00"])
    user_id: str | None = Field(None, alias="userId", description="User performing the edit")

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class TextEditRequest(_EditRequest):
    """Request model for adding a text overlay. Defaults: x=10, y=50, fontSize=24, color=red."""
    text: str | None = Field(None, description="Text to draw", examples=["Lesion, left forearm"])
    font_size: float | None = Field(None, alias="fontSize", gt=0)


class DrawEditRequest(_EditRequest):
    """Request model for drawing a shape overlay."""
    shape: str | None = Field(None, description="One of rectangle, circle, arrow, line", examples=["circle"])
    width: float | None = Field(None, description="Width; radius for circles (default 50)")
    height: float | None = None
    stroke_width: int | None = Field(None, alias="strokeWidth", ge=1)


class EditImageResponse(_CamelModel):
    """Response for an edit that produced a new image."""
    message: str
    id: str
    filename: str
    url: str
    edit_type: str = Field(..., alias="editType", examples=["add_text", "draw"])
    parameters: dict[str, Any] = Field(default_factory=dict)
    is_edited: bool = Field(True, alias="isEdited")
    parent_image_id: str | None = Field(None, alias="parentImageId")
    recorded: bool = Field(..., description="False when the source had no metadata row and no lineage was stored")
    image: ImageMetadata | None = None

    @classmethod
    def from_result(cls, result: AnnotationResult, message: str) -> EditImageResponse:
        return cls(
            message=message,
            id=result.id,
            filename=result.filename,
            url=result.url,
            edit_type=result.edit_type,
            parameters=result.params,
            parent_image_id=result.image.parent_image_id if result.image else None,
            recorded=result.recorded,
            image=ImageMetadata.from_entity(result.image) if result.image else None,
        )


class DeleteImageResponse(_CamelModel):
    message: str = "Image deleted successfully"
    id: str
