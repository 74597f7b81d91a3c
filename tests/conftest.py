import io
import sys
from pathlib import Path

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Ensure project root is on sys.path so 'image_service' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def make_png_bytes(w=64, h=64, color=(128, 64, 32), fmt="PNG") -> bytes:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, :] = color
    img = Image.fromarray(arr, mode="RGB")
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def settings(tmp_path):
    from image_service.config import Settings

    return Settings(
        UPLOAD_DIR=tmp_path / "uploads",
        DATABASE_BACKEND="memory",
        MAX_FILE_SIZE=1024 * 1024,
    )


@pytest.fixture()
def client(settings) -> TestClient:
    # lazy import after settings are built
    from image_service.main import create_app

    app = create_app(settings)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def storage(tmp_path):
    from image_service.infrastructure.storage.local_storage import LocalStorage

    return LocalStorage(tmp_path / "store")


@pytest.fixture()
def memory():
    from image_service.infrastructure.database.memory_tables import MemoryTables

    return MemoryTables()


@pytest.fixture()
def image_repo(memory):
    from image_service.infrastructure.database.repositories.image_repository import ImageRepository

    return ImageRepository(None, memory)


@pytest.fixture()
def edit_repo(memory):
    from image_service.infrastructure.database.repositories.edit_repository import EditRepository

    return EditRepository(None, memory)


@pytest.fixture()
def make_png():
    return make_png_bytes
