from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ImageEntity:
    id: str
    filename: str  # {id}{ext}, relative to the upload directory
    original_filename: str | None
    path: str
    patient_id: str
    uploaded_by_user_id: str
    uploaded_by_username: str | None
    upload_date: datetime
    file_size: int | None = None  # bytes
    mime_type: str | None = None
    description: str | None = None
    tags: str | None = None
    # Lineage: set only on rows produced by an edit
    is_edited: bool = False
    parent_image_id: str | None = None

    @property
    def url(self) -> str:
        return f"/images/{self.filename}"
