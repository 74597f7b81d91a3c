from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from image_service.domain.entities.image_edit import EDIT_TYPES, ImageEditEntity
from image_service.domain.errors import ConstraintViolation
from image_service.infrastructure.database.memory_tables import MemoryTables
from image_service.infrastructure.database.postgres_client import PostgresClient


class EditRepository:
    """Append-only log of the edits that produced derived images."""

    def __init__(self, pg_client: PostgresClient | None, memory: MemoryTables | None = None) -> None:
        self.pg_client = pg_client
        self.use_local_db = pg_client is not None
        self.memory = memory if memory is not None else MemoryTables()

    def _row_to_entity(self, row: dict) -> ImageEditEntity:
        # JSONB comes back decoded from psycopg2, but tolerate text columns
        edit_data = row.get("edit_data", {})
        if isinstance(edit_data, str):
            edit_data = json.loads(edit_data)
        return ImageEditEntity(
            id=str(row["id"]),
            image_id=row["image_id"],
            edit_type=row["edit_type"],
            edit_data=edit_data,
            edited_by_user_id=row.get("edited_by_user_id"),
            edited_at=row["edited_at"],
        )

    def create(
        self,
        image_id: str,
        edit_type: str,
        edit_data: dict[str, Any],
        edited_by_user_id: str | None = None,
    ) -> ImageEditEntity:
        if edit_type not in EDIT_TYPES:
            raise ConstraintViolation(f"Unknown edit type: {edit_type}")
        now = datetime.now(UTC)

        # PostgreSQL mode
        if self.use_local_db:
            query = """
                INSERT INTO image_edits (image_id, edit_type, edit_data, edited_by_user_id, edited_at)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING *
            """
            row = self.pg_client.execute_insert(
                query, (image_id, edit_type, json.dumps(edit_data), edited_by_user_id, now)
            )
            return self._row_to_entity(row)

        # In-memory mode
        with self.memory.lock:
            if image_id not in self.memory.images:
                raise ConstraintViolation(f"Image does not exist: {image_id}")
            entity = ImageEditEntity(
                id=self.memory.next_edit_id(),
                image_id=image_id,
                edit_type=edit_type,
                edit_data=dict(edit_data),
                edited_by_user_id=edited_by_user_id,
                edited_at=now,
            )
            self.memory.edits[entity.id] = entity
        return entity

    def list_by_image(self, image_id: str) -> list[ImageEditEntity]:
        if self.use_local_db:
            query = """
                SELECT * FROM image_edits
                WHERE image_id = %s
                ORDER BY edited_at ASC
            """
            rows = self.pg_client.execute_many(query, (image_id,))
            return [self._row_to_entity(row) for row in rows]

        with self.memory.lock:
            items = [e for e in self.memory.edits.values() if e.image_id == image_id]
        return sorted(items, key=lambda e: e.edited_at)
