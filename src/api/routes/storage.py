from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.dependencies import (
    get_cleanup_orphans_use_case,
    get_storage_usage_use_case,
    require_privileged_caller,
)
from src.api.schemas.storage_responses import CleanupOrphansResponse, StorageUsageResponse
from src.application.use_cases.cleanup_orphan_blobs import CleanupOrphanBlobs
from src.application.use_cases.get_storage_usage import GetStorageUsage
from src.domain.errors.lifecycle_errors import RelationalFailureError, StoreUnavailableError

router = APIRouter(
    prefix="/admin/storage",
    tags=["storage"],
    dependencies=[Depends(require_privileged_caller)],
)


@router.get("/usage", response_model=StorageUsageResponse)
async def storage_usage(
    use_case: GetStorageUsage = Depends(get_storage_usage_use_case),
) -> StorageUsageResponse:
    """Bucket size and remaining capacity against the configured plan limit."""
    try:
        usage = await use_case.execute()
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    except RelationalFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return StorageUsageResponse.model_validate(usage)


@router.post("/cleanup-orphans", response_model=CleanupOrphansResponse)
async def cleanup_orphans(
    dry_run: bool = Query(default=True),
    use_case: CleanupOrphanBlobs = Depends(get_cleanup_orphans_use_case),
) -> CleanupOrphansResponse:
    """Remove blobs no listing references. Defaults to a dry run."""
    try:
        output = await use_case.execute(dry_run=dry_run)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    except RelationalFailureError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return CleanupOrphansResponse.model_validate(output)
