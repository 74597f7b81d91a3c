"""In-process metadata tables used when no database is configured."""
from __future__ import annotations

import threading

from image_service.domain.entities.image import ImageEntity
from image_service.domain.entities.image_edit import ImageEditEntity


class MemoryTables:
    def __init__(self) -> None:
        self.images: dict[str, ImageEntity] = {}
        self.edits: dict[str, ImageEditEntity] = {}
        self.lock = threading.RLock()
        self._edit_seq = 0

    def next_edit_id(self) -> str:
        with self.lock:
            self._edit_seq += 1
            return str(self._edit_seq)
