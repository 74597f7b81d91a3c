from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from image_service.application.dtos.common_dto import HealthResponse, RootResponse
from image_service.config import Settings, get_settings
from image_service.infrastructure.api.middlewares import add_default_middlewares
from image_service.infrastructure.api.routes.image_routes import router as image_router
from image_service.infrastructure.database.memory_tables import MemoryTables
from image_service.infrastructure.database.postgres_client import PostgresClient
from image_service.infrastructure.storage.local_storage import LocalStorage
from image_service.logging_setup import configure_logging

logger = structlog.get_logger(__name__)

VERSION = "2.0.0"


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.pg_client is not None:
            app.state.pg_client.init_schema()
        logger.info(
            "image_service_started",
            upload_dir=str(settings.upload_dir),
            database=settings.database_backend,
            port=settings.port,
        )
        yield
        if app.state.pg_client is not None:
            app.state.pg_client.close()

    app = FastAPI(
        title="Image Service",
        version=VERSION,
        description="""
        ## Image Service API

        Upload patient-linked images, keep their metadata, and annotate them with
        text and shapes. Every annotation is saved as a new image that records the
        image it was derived from, plus an entry in the edit log.

        ### Error Responses
        - **400 Bad Request**: Missing required field, unsupported shape or file type
        - **404 Not Found**: Image file or metadata row does not exist
        - **413 Payload Too Large**: Upload exceeds the configured size limit
        - **500 Internal Server Error**: Storage, database or rendering failure
        """,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.storage = LocalStorage(settings.upload_dir)
    app.state.memory = MemoryTables()
    app.state.pg_client = PostgresClient(settings) if settings.use_postgres else None
    add_default_middlewares(app, settings)

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Every malformed or out-of-range field is a 400
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": f"Invalid request: {problems}"},
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", path=request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/", response_model=RootResponse, summary="API Root")
    def root():
        return RootResponse(
            message="Image Service API",
            version=app.version,
            endpoints={
                "upload": "POST /images/upload",
                "getImage": "GET /images/{filename}",
                "listImages": "GET /images",
                "patientImages": "GET /images/patient/{patientId}",
                "imageMetadata": "GET /images/metadata/{imageId}",
                "addText": "POST /images/{filename}/text",
                "draw": "POST /images/{filename}/draw",
                "delete": "DELETE /images/{imageId}",
            },
        )

    @app.get("/health", response_model=HealthResponse, summary="Health Check")
    def health():
        pg_client = app.state.pg_client
        if pg_client is None:
            database = "memory"
        else:
            database = "connected" if pg_client.ping() else "unavailable"
        return HealthResponse(
            status="OK",
            service="Image Service",
            port=settings.port,
            database=database,
            features=[
                "Image upload with patient linking",
                "Metadata storage",
                "Text and shape annotations with edit lineage",
                "Patient-specific image retrieval",
            ],
        )

    app.include_router(image_router)
    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
