"""Single-image upload and delete endpoints used by the storefront front-end."""
import structlog
from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse

from src.api.dependencies import (
    get_delete_blob_use_case,
    get_ingest_image_use_case,
    require_privileged_caller,
)
from src.api.schemas.storage_responses import (
    DeleteImageRequest,
    DeleteImageResponse,
    ErrorResponse,
    UploadImageResponse,
)
from src.application.use_cases.delete_blob import DeleteBlob
from src.application.use_cases.ingest_image import IngestImage
from src.domain.errors.lifecycle_errors import (
    LifecycleError,
    NotResolvableError,
    StorageNotConfiguredError,
    StoreUnavailableError,
    ValidationError,
    WriteConflictError,
)

logger = structlog.get_logger(__name__)
router = APIRouter(
    prefix="/api",
    tags=["images"],
    dependencies=[Depends(require_privileged_caller)],
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.post(
    "/upload",
    response_model=UploadImageResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def upload_image(
    file: UploadFile | None = File(default=None),
    use_case: IngestImage = Depends(get_ingest_image_use_case),
) -> UploadImageResponse | JSONResponse:
    if file is None:
        return _error(status.HTTP_400_BAD_REQUEST, "No file uploaded.")

    data = await file.read()
    try:
        ingested = await use_case.execute(data, file.filename)
    except ValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except StorageNotConfiguredError as exc:
        logger.error("upload_rejected_storage_not_configured")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Server configuration error: {exc}")
    except WriteConflictError as exc:
        return _error(status.HTTP_409_CONFLICT, str(exc))
    except LifecycleError as exc:
        logger.error("upload_failed", filename=file.filename, error=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Upload failed: {exc}")

    return UploadImageResponse(url=ingested.public_url, file_name=ingested.stored_name)


@router.post(
    "/delete-image",
    response_model=DeleteImageResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def delete_image(
    body: DeleteImageRequest,
    use_case: DeleteBlob = Depends(get_delete_blob_use_case),
) -> DeleteImageResponse | JSONResponse:
    if not body.image_url:
        return _error(status.HTTP_400_BAD_REQUEST, "imageUrl is required.")

    try:
        deleted = await use_case.execute(body.image_url)
    except NotResolvableError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except StoreUnavailableError as exc:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Delete failed: {exc}")

    return DeleteImageResponse(filename=deleted.key, existed=deleted.existed)
