"""Common DTOs for service-level endpoints."""
from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field(..., description="Health status", examples=["OK"])
    service: str = Field(..., examples=["Image Service"])
    port: int
    database: str = Field(..., description="'memory', 'connected' or 'unavailable'")
    features: list[str] = Field(default_factory=list)


class RootResponse(BaseModel):
    message: str
    version: str
    endpoints: dict[str, str]
