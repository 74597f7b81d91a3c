from __future__ import annotations

import dataclasses

from image_service.domain.entities.image import ImageEntity
from image_service.domain.errors import ConstraintViolation
from image_service.infrastructure.database.memory_tables import MemoryTables
from image_service.infrastructure.database.postgres_client import PostgresClient

_COLUMNS = (
    "id, filename, original_filename, path, patient_id, uploaded_by_user_id, "
    "uploaded_by_username, upload_date, file_size, mime_type, description, tags, "
    "is_edited, parent_image_id"
)


class ImageRepository:
    def __init__(self, pg_client: PostgresClient | None, memory: MemoryTables | None = None) -> None:
        self.pg_client = pg_client
        self.use_local_db = pg_client is not None
        self.memory = memory if memory is not None else MemoryTables()

    def _row_to_entity(self, row: dict) -> ImageEntity:
        return ImageEntity(
            id=row["id"],
            filename=row["filename"],
            original_filename=row.get("original_filename"),
            path=row["path"],
            patient_id=row["patient_id"],
            uploaded_by_user_id=row["uploaded_by_user_id"],
            uploaded_by_username=row.get("uploaded_by_username"),
            upload_date=row["upload_date"],
            file_size=row.get("file_size"),
            mime_type=row.get("mime_type"),
            description=row.get("description"),
            tags=row.get("tags"),
            is_edited=bool(row.get("is_edited", False)),
            parent_image_id=row.get("parent_image_id"),
        )

    def create(self, entity: ImageEntity) -> ImageEntity:
        """Insert one image row.

        Raises:
            ConstraintViolation: If id/filename already exist, patient_id is
                missing, or the parent image does not exist.
        """
        if not entity.patient_id:
            raise ConstraintViolation("patient_id is required")

        # PostgreSQL mode
        if self.use_local_db:
            query = f"""
                INSERT INTO images ({_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {_COLUMNS}
            """
            row = self.pg_client.execute_insert(
                query,
                (
                    entity.id, entity.filename, entity.original_filename, entity.path,
                    entity.patient_id, entity.uploaded_by_user_id, entity.uploaded_by_username,
                    entity.upload_date, entity.file_size, entity.mime_type,
                    entity.description, entity.tags, entity.is_edited, entity.parent_image_id,
                ),
            )
            return self._row_to_entity(row)

        # In-memory mode
        with self.memory.lock:
            if entity.id in self.memory.images:
                raise ConstraintViolation(f"Duplicate image id: {entity.id}")
            if any(img.filename == entity.filename for img in self.memory.images.values()):
                raise ConstraintViolation(f"Duplicate filename: {entity.filename}")
            if entity.parent_image_id and entity.parent_image_id not in self.memory.images:
                raise ConstraintViolation(f"Parent image does not exist: {entity.parent_image_id}")
            self.memory.images[entity.id] = entity
        return entity

    def get(self, image_id: str) -> ImageEntity | None:
        if self.use_local_db:
            row = self.pg_client.execute_one(
                f"SELECT {_COLUMNS} FROM images WHERE id = %s", (image_id,)
            )
            return self._row_to_entity(row) if row else None

        return self.memory.images.get(image_id)

    def get_by_filename(self, filename: str) -> ImageEntity | None:
        if self.use_local_db:
            row = self.pg_client.execute_one(
                f"SELECT {_COLUMNS} FROM images WHERE filename = %s", (filename,)
            )
            return self._row_to_entity(row) if row else None

        with self.memory.lock:
            return next(
                (img for img in self.memory.images.values() if img.filename == filename), None
            )

    def list_by_patient(self, patient_id: str) -> list[ImageEntity]:
        """Images for one patient, newest upload first."""
        if self.use_local_db:
            query = f"""
                SELECT {_COLUMNS} FROM images
                WHERE patient_id = %s
                ORDER BY upload_date DESC
            """
            rows = self.pg_client.execute_many(query, (patient_id,))
            return [self._row_to_entity(row) for row in rows]

        with self.memory.lock:
            items = [img for img in self.memory.images.values() if img.patient_id == patient_id]
        return sorted(items, key=lambda i: i.upload_date, reverse=True)

    def list_all(self) -> list[ImageEntity]:
        if self.use_local_db:
            rows = self.pg_client.execute_many(
                f"SELECT {_COLUMNS} FROM images ORDER BY upload_date DESC"
            )
            return [self._row_to_entity(row) for row in rows]

        with self.memory.lock:
            items = list(self.memory.images.values())
        return sorted(items, key=lambda i: i.upload_date, reverse=True)

    def delete(self, image_id: str) -> bool:
        """Delete an image row together with its edit log in one transaction.

        Images derived from it keep their rows; their parent reference is cleared.
        """
        if self.use_local_db:
            with self.pg_client.get_cursor(dict_cursor=False) as cursor:
                cursor.execute("DELETE FROM image_edits WHERE image_id = %s", (image_id,))
                cursor.execute(
                    "UPDATE images SET parent_image_id = NULL WHERE parent_image_id = %s",
                    (image_id,),
                )
                cursor.execute("DELETE FROM images WHERE id = %s", (image_id,))
                return cursor.rowcount > 0

        with self.memory.lock:
            if self.memory.images.pop(image_id, None) is None:
                return False
            for edit_id in [k for k, v in self.memory.edits.items() if v.image_id == image_id]:
                del self.memory.edits[edit_id]
            for key, img in list(self.memory.images.items()):
                if img.parent_image_id == image_id:
                    self.memory.images[key] = dataclasses.replace(img, parent_image_id=None)
            return True
