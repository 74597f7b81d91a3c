from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import structlog

from image_service.domain.errors import NotFoundError, StorageReadError, StorageWriteError

logger = structlog.get_logger(__name__)

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".tif", ".tiff"})


@dataclass
class StorageResult:
    id: str
    filename: str
    path: str
    size: int


@dataclass
class StoredFile:
    """Handle for a file accepted by the upload filter and already on disk."""

    id: str
    filename: str
    path: str
    original_filename: str
    size: int
    mime_type: str


@dataclass
class FileInfo:
    filename: str
    size: int
    modified_at: datetime


class LocalStorage:
    """Directory of image files addressed by generated filename."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def new_identifier() -> str:
        return uuid.uuid4().hex

    def path_for(self, filename: str) -> Path:
        # Only bare names produced by put() are addressable
        if not filename or Path(filename).name != filename or filename.startswith("."):
            raise NotFoundError(f"Image not found: {filename}")
        return self.root / filename

    def put(self, data: bytes, ext: str) -> StorageResult:
        ext = ext.lower()
        if ext and not ext.startswith("."):
            ext = f".{ext}"
        image_id = self.new_identifier()
        filename = f"{image_id}{ext}"
        full_path = self.root / filename
        try:
            # "x" refuses to overwrite an existing file
            with open(full_path, "xb") as fh:
                fh.write(data)
        except OSError as exc:
            raise StorageWriteError(f"Failed to store file: {exc}") from exc
        logger.debug("file_stored", filename=filename, size=len(data))
        return StorageResult(id=image_id, filename=filename, path=str(full_path), size=len(data))

    def exists(self, filename: str) -> bool:
        try:
            return self.path_for(filename).is_file()
        except NotFoundError:
            return False

    def get(self, filename: str) -> bytes:
        full_path = self.path_for(filename)
        if not full_path.is_file():
            raise NotFoundError(f"Image not found: {filename}")
        try:
            return full_path.read_bytes()
        except OSError as exc:
            raise StorageReadError(f"Failed to read file: {exc}") from exc

    def delete(self, filename: str) -> None:
        full_path = self.path_for(filename)
        try:
            full_path.unlink()
        except FileNotFoundError as exc:
            raise NotFoundError(f"Image not found: {filename}") from exc
        except OSError as exc:
            raise StorageWriteError(f"Failed to delete file: {exc}") from exc

    def describe(self, filename: str) -> FileInfo:
        full_path = self.path_for(filename)
        try:
            stat = full_path.stat()
        except FileNotFoundError as exc:
            raise NotFoundError(f"Image not found: {filename}") from exc
        return FileInfo(
            filename=filename,
            size=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
        )

    def list(self) -> list[str]:
        """Image files in the store, newest first."""
        entries = [
            p
            for p in self.root.iterdir()
            if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
        ]
        entries.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return [p.name for p in entries]
