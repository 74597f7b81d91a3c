"""Service configuration.

Settings are read once at startup from the process environment (and an optional
``.env`` file) and handed to each component explicitly.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # File store
    upload_dir: Path = Field(Path("./uploads"), alias="UPLOAD_DIR")
    allowed_types: str = Field("image/jpeg,image/png,image/jpg", alias="ALLOWED_TYPES")
    max_file_size: int = Field(5 * 1024 * 1024, alias="MAX_FILE_SIZE")

    # Metadata store: "memory" or "postgres"
    database_backend: str = Field("memory", alias="DATABASE_BACKEND")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("", alias="DB_PASSWORD")
    db_name: str = Field("patientsystemdb", alias="DB_NAME")
    db_pool_max: int = Field(10, alias="DB_POOL_MAX")

    # HTTP
    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(3001, alias="PORT")
    env: str = Field("development", alias="ENV")
    cors_origins: str = Field("", alias="CORS_ORIGINS")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    @property
    def allowed_mime_types(self) -> list[str]:
        return [t.strip().lower() for t in self.allowed_types.split(",") if t.strip()]

    @property
    def use_postgres(self) -> bool:
        return self.database_backend.lower() == "postgres"


@lru_cache
def get_settings() -> Settings:
    return Settings()
