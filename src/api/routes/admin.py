from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from src.api.dependencies import (
    get_create_batch_use_case,
    get_delete_listings_use_case,
    get_listing_repo,
    get_listing_use_case,
    get_update_listing_use_case,
    require_privileged_caller,
)
from src.api.schemas.listing_responses import (
    BatchResultResponse,
    BulkDeleteRequest,
    BulkDeleteResponse,
    DeleteResultResponse,
    ListingDetailResponse,
    ListingResponse,
    PaginatedListingsResponse,
    UpdateListingRequest,
)
from src.application.interfaces.listing_repository import ListingRepository
from src.application.use_cases.create_listing_batch import (
    BatchProgress,
    CreateListingBatch,
    CreateListingBatchInput,
    ImageUpload,
)
from src.application.use_cases.delete_listings import DeleteListings, DeleteStatus
from src.application.use_cases.get_listing import GetListing, ListingNotFoundError
from src.application.use_cases.update_listing import UpdateListing, UpdateListingInput
from src.config import settings
from src.domain.errors.lifecycle_errors import (
    BatchFailedError,
    RelationalFailureError,
    ValidationError,
)
from src.domain.services.price_parser import split_price_text

logger = structlog.get_logger(__name__)
router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_privileged_caller)],
)

_DELETE_STATUS_CODES: dict[DeleteStatus, int] = {
    DeleteStatus.DELETED: status.HTTP_200_OK,
    DeleteStatus.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    DeleteStatus.BLOB_DELETE_FAILED: status.HTTP_409_CONFLICT,
    DeleteStatus.LOOKUP_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    DeleteStatus.IMAGE_ROWS_DELETE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    DeleteStatus.LISTING_DELETE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _log_progress(progress: BatchProgress) -> None:
    logger.info(
        "listing_batch_progress",
        stage=progress.stage.value,
        percent=progress.percent,
        completed=progress.completed,
        total=progress.total,
    )


@router.get("/listings", response_model=PaginatedListingsResponse)
async def list_listings(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    repo: ListingRepository = Depends(get_listing_repo),
) -> PaginatedListingsResponse:
    """List listings, newest first."""
    try:
        listings, total = await repo.list_all(limit=limit, offset=offset)
    except RelationalFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return PaginatedListingsResponse(
        listings=[ListingResponse.model_validate(l) for l in listings],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/listings/{listing_id}", response_model=ListingDetailResponse)
async def get_listing(
    listing_id: UUID,
    use_case: GetListing = Depends(get_listing_use_case),
) -> ListingDetailResponse:
    try:
        output = await use_case.execute(listing_id)
    except ListingNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Listing not found.")
    except RelationalFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return ListingDetailResponse(
        **ListingResponse.model_validate(output.listing).model_dump(),
        gallery=output.gallery,
    )


@router.patch("/listings/{listing_id}", response_model=ListingResponse)
async def update_listing(
    listing_id: UUID,
    body: UpdateListingRequest,
    use_case: UpdateListing = Depends(get_update_listing_use_case),
) -> ListingResponse:
    """Edit title, price, description and holder label; images are untouched."""
    try:
        listing = await use_case.execute(
            UpdateListingInput(
                listing_id=listing_id,
                title=body.title,
                price=body.price,
                description=body.description,
                holder_label=body.holder_label,
            )
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except ListingNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Listing not found.")
    except RelationalFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return ListingResponse.model_validate(listing)


@router.post(
    "/listings/batch",
    status_code=status.HTTP_201_CREATED,
    response_model=BatchResultResponse,
)
async def create_listing_batch(
    files: list[UploadFile] = File(...),
    price_text: str = Form(...),
    holder_label: str | None = Form(default=None),
    max_concurrency: int | None = Form(default=None),
    use_case: CreateListingBatch = Depends(get_create_batch_use_case),
) -> BatchResultResponse:
    """
    Create one listing per uploaded image.

    ``price_text`` holds one price per image, in upload order, separated by
    ``-`` and/or newlines (``"52m - 54m - 50m"``).
    """
    images = [ImageUpload(data=await f.read(), filename=f.filename) for f in files]
    try:
        result = await use_case.execute(
            CreateListingBatchInput(
                images=images,
                prices=split_price_text(price_text),
                holder_label=holder_label,
                max_concurrency=(
                    max_concurrency
                    if max_concurrency is not None
                    else settings.upload_max_concurrency
                ),
            ),
            progress=_log_progress,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except BatchFailedError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=BatchResultResponse.model_validate(exc.result).model_dump(mode="json"),
        )
    return BatchResultResponse.model_validate(result)


@router.delete("/listings/{listing_id}", response_model=DeleteResultResponse)
async def delete_listing(
    listing_id: UUID,
    use_case: DeleteListings = Depends(get_delete_listings_use_case),
) -> DeleteResultResponse:
    """Delete a listing's blobs, then its rows; nothing relational changes if a blob remains."""
    result = await use_case.execute(listing_id)
    response = DeleteResultResponse.model_validate(result)
    if not result.success:
        raise HTTPException(
            status_code=_DELETE_STATUS_CODES[result.status],
            detail=response.model_dump(mode="json"),
        )
    return response


@router.post("/listings/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_listings(
    body: BulkDeleteRequest,
    use_case: DeleteListings = Depends(get_delete_listings_use_case),
) -> BulkDeleteResponse:
    result = await use_case.execute_many(body.listing_ids)
    return BulkDeleteResponse.model_validate(result)
