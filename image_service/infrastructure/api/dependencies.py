from __future__ import annotations

from fastapi import Request

from image_service.config import Settings
from image_service.domain.services.overlay_service import OverlayService
from image_service.infrastructure.database.repositories.edit_repository import EditRepository
from image_service.infrastructure.database.repositories.image_repository import ImageRepository
from image_service.infrastructure.storage.local_storage import LocalStorage


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> LocalStorage:
    return request.app.state.storage


def get_image_repo(request: Request) -> ImageRepository:
    return ImageRepository(request.app.state.pg_client, request.app.state.memory)


def get_edit_repo(request: Request) -> EditRepository:
    return EditRepository(request.app.state.pg_client, request.app.state.memory)


def get_overlay_service() -> OverlayService:
    return OverlayService()
