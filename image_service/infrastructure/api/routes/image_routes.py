from __future__ import annotations

import mimetypes

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response

from image_service.application.dtos.image_dto import (
    DeleteImageResponse,
    DrawEditRequest,
    EditImageResponse,
    ImageMetadata,
    ListImagesResponse,
    PatientImagesResponse,
    StoredFileMetadata,
    TextEditRequest,
    UploadImageResponse,
)
from image_service.application.use_cases.annotate_image import AnnotateImageUseCase
from image_service.application.use_cases.delete_image import DeleteImageUseCase
from image_service.application.use_cases.list_images import SOURCE_FILES, ListImagesUseCase
from image_service.application.use_cases.upload_image import UploadImageUseCase
from image_service.config import Settings
from image_service.domain.errors import ImageServiceError, NotFoundError
from image_service.domain.services.overlay_service import OverlayService
from image_service.infrastructure.api.dependencies import (
    get_edit_repo,
    get_image_repo,
    get_overlay_service,
    get_settings,
    get_storage,
)
from image_service.infrastructure.api.upload_filter import accept_upload
from image_service.infrastructure.database.repositories.edit_repository import EditRepository
from image_service.infrastructure.database.repositories.image_repository import ImageRepository
from image_service.infrastructure.storage.local_storage import LocalStorage

router = APIRouter(
    prefix="/images",
    tags=["Images"],
    responses={
        404: {"description": "Not Found - Image file or metadata row does not exist"},
        500: {"description": "Internal Server Error - Storage, database or rendering failure"},
    },
)


def _http_error(exc: ImageServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.post(
    "/upload",
    response_model=UploadImageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload Image",
    description="""
    Upload an image linked to a patient.

    **Form fields**: `file` (required), `patientId` (required), `userId` (required),
    `username`, `description`, `tags`

    The file type must be in the configured allow-list and the size below the
    configured maximum. A request missing `patientId` or `userId` is rejected and
    the received file is discarded.
    """,
    response_description="Descriptor of the stored image",
    responses={
        400: {"description": "Bad Request - Missing file, patientId or userId, or file type not allowed"},
        413: {"description": "Payload Too Large - File size exceeds limit"},
    },
)
def upload_image(
    file: UploadFile | None = File(None, description="Image file to upload"),
    patient_id: str | None = Form(None, alias="patientId"),
    user_id: str | None = Form(None, alias="userId"),
    username: str | None = Form(None),
    description: str | None = Form(None),
    tags: str | None = Form(None),
    settings: Settings = Depends(get_settings),
    storage: LocalStorage = Depends(get_storage),
    images: ImageRepository = Depends(get_image_repo),
):
    """Store an uploaded file and record its metadata row."""
    uc = UploadImageUseCase(storage=storage, image_repo=images)
    try:
        stored = accept_upload(file, settings, storage)
        entity = uc.execute(
            stored,
            patient_id=patient_id,
            user_id=user_id,
            username=username,
            description=description,
            tags=tags,
        )
    except ImageServiceError as exc:
        raise _http_error(exc) from exc
    return UploadImageResponse.from_entity(entity)


@router.get(
    "",
    response_model=ListImagesResponse,
    summary="List Images",
    description="""
    List every image, newest first.

    If the metadata store cannot be reached, the image files in the upload
    directory are listed instead and `source` is `files`.
    """,
)
def list_images(
    storage: LocalStorage = Depends(get_storage),
    images: ImageRepository = Depends(get_image_repo),
):
    listing = ListImagesUseCase(storage=storage, image_repo=images).execute()
    if listing.source == SOURCE_FILES:
        files = [StoredFileMetadata.from_file(f) for f in listing.files]
        return ListImagesResponse(images=files, total=len(files), source=listing.source)
    payload = [ImageMetadata.from_entity(it) for it in listing.images]
    return ListImagesResponse(images=payload, total=len(payload), source=listing.source)


@router.get(
    "/patient/{patient_id}",
    response_model=PatientImagesResponse,
    summary="List Patient Images",
    description="All images linked to a patient, newest upload first.",
)
def list_patient_images(
    patient_id: str,
    images: ImageRepository = Depends(get_image_repo),
):
    try:
        items = images.list_by_patient(patient_id)
    except ImageServiceError as exc:
        raise _http_error(exc) from exc
    return PatientImagesResponse(
        patient_id=patient_id,
        images=[ImageMetadata.from_entity(it) for it in items],
    )


@router.get(
    "/metadata/{image_id}",
    response_model=ImageMetadata,
    summary="Get Image Metadata",
    description="Full metadata row for one image, including its edit lineage.",
)
def get_image_metadata(
    image_id: str,
    images: ImageRepository = Depends(get_image_repo),
):
    try:
        entity = images.get(image_id)
    except ImageServiceError as exc:
        raise _http_error(exc) from exc
    if entity is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return ImageMetadata.from_entity(entity)


@router.get(
    "/{filename}",
    summary="Download Image File",
    description="Raw bytes of a stored file. Works for files without a metadata row.",
    responses={200: {"content": {"image/*": {}}, "description": "Image file content"}},
)
def get_image(
    filename: str,
    storage: LocalStorage = Depends(get_storage),
):
    try:
        data = storage.get(filename)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="Image not found") from exc
    except ImageServiceError as exc:
        raise _http_error(exc) from exc
    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)


@router.post(
    "/{filename}/text",
    response_model=EditImageResponse,
    summary="Add Text",
    description="""
    Draw text onto an image and save the result as a new image derived from it.

    Defaults: `x=10`, `y=50` (baseline), `fontSize=24`, `color=red`.
    The source image is left untouched.
    """,
    responses={400: {"description": "Bad Request - Text missing or invalid color"}},
)
def add_text(
    filename: str,
    body: TextEditRequest,
    storage: LocalStorage = Depends(get_storage),
    images: ImageRepository = Depends(get_image_repo),
    edits: EditRepository = Depends(get_edit_repo),
    overlay: OverlayService = Depends(get_overlay_service),
):
    uc = AnnotateImageUseCase(storage=storage, image_repo=images, edit_repo=edits, overlay=overlay)
    try:
        result = uc.add_text(
            filename,
            body.text,
            x=body.x,
            y=body.y,
            font_size=body.font_size,
            color=body.color,
            user_id=body.user_id,
        )
    except ImageServiceError as exc:
        raise _http_error(exc) from exc
    return EditImageResponse.from_result(result, "Text added successfully")


@router.post(
    "/{filename}/draw",
    response_model=EditImageResponse,
    summary="Draw Shape",
    description="""
    Draw a shape onto an image and save the result as a new image derived from it.

    **Shapes:**
    - `rectangle` - from (`x`, `y`), `width` x `height` (default 100 x 100)
    - `circle` - centered at (`x`, `y`), radius `width` (default 50)
    - `line`, `arrow` - from (`x`, `y`) to (`x + width`, `y + height`)
    """,
    responses={400: {"description": "Bad Request - Unsupported shape or invalid color"}},
)
def draw_on_image(
    filename: str,
    body: DrawEditRequest,
    storage: LocalStorage = Depends(get_storage),
    images: ImageRepository = Depends(get_image_repo),
    edits: EditRepository = Depends(get_edit_repo),
    overlay: OverlayService = Depends(get_overlay_service),
):
    uc = AnnotateImageUseCase(storage=storage, image_repo=images, edit_repo=edits, overlay=overlay)
    try:
        result = uc.add_shape(
            filename,
            body.shape,
            x=body.x,
            y=body.y,
            width=body.width,
            height=body.height,
            color=body.color,
            stroke_width=body.stroke_width,
            user_id=body.user_id,
        )
    except ImageServiceError as exc:
        raise _http_error(exc) from exc
    return EditImageResponse.from_result(result, "Drawing added successfully")


@router.delete(
    "/{image_id}",
    response_model=DeleteImageResponse,
    summary="Delete Image",
    description="""
    Delete an image by id.

    **This operation will:**
    - Remove the metadata row and its edit log entries
    - Clear the parent reference of images derived from it
    - Remove the file (a missing file does not fail the request)
    """,
)
def delete_image(
    image_id: str,
    storage: LocalStorage = Depends(get_storage),
    images: ImageRepository = Depends(get_image_repo),
):
    try:
        DeleteImageUseCase(storage=storage, image_repo=images).execute(image_id)
    except ImageServiceError as exc:
        raise _http_error(exc) from exc
    return DeleteImageResponse(id=image_id)
