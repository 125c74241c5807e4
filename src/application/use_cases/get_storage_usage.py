from dataclasses import dataclass

import structlog

from src.application.interfaces.listing_repository import ListingRepository
from src.application.interfaces.object_store import ObjectStore

logger = structlog.get_logger(__name__)


@dataclass
class StorageUsage:
    listing_count: int
    listing_image_count: int
    object_count: int
    total_bytes: int
    average_bytes_per_listing: float
    storage_limit_bytes: int
    remaining_bytes: int
    estimated_remaining_listings: int | None


class GetStorageUsage:
    """Use case: Report bucket usage against the plan's storage limit."""

    def __init__(
        self,
        listing_repo: ListingRepository,
        object_store: ObjectStore,
        storage_limit_bytes: int,
    ) -> None:
        self._listing_repo = listing_repo
        self._object_store = object_store
        self._storage_limit_bytes = storage_limit_bytes

    async def execute(self) -> StorageUsage:
        listing_count, image_count = await self._listing_repo.count()
        objects = await self._object_store.list_objects()

        total_bytes = sum(obj.size for obj in objects)
        average = total_bytes / listing_count if listing_count else 0.0
        remaining = max(self._storage_limit_bytes - total_bytes, 0)

        usage = StorageUsage(
            listing_count=listing_count,
            listing_image_count=image_count,
            object_count=len(objects),
            total_bytes=total_bytes,
            average_bytes_per_listing=round(average, 1),
            storage_limit_bytes=self._storage_limit_bytes,
            remaining_bytes=remaining,
            estimated_remaining_listings=int(remaining // average) if average else None,
        )
        logger.info(
            "storage_usage_computed",
            objects=usage.object_count,
            total_bytes=total_bytes,
            listings=listing_count,
        )
        return usage
