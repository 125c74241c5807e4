import asyncio
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

import structlog

from src.application.interfaces.event_publisher import EventPublisher
from src.application.interfaces.listing_repository import ListingRepository
from src.application.use_cases.delete_blob import DeleteBlob
from src.domain.entities.listing import collect_references
from src.domain.events.domain_events import ListingDeletedEvent

logger = structlog.get_logger(__name__)


class DeleteStatus(str, Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    LOOKUP_FAILED = "lookup_failed"
    BLOB_DELETE_FAILED = "blob_delete_failed"
    IMAGE_ROWS_DELETE_FAILED = "image_rows_delete_failed"
    LISTING_DELETE_FAILED = "listing_delete_failed"


@dataclass
class BlobFailure:
    public_url: str
    error: str


@dataclass
class DeleteResult:
    listing_id: UUID
    status: DeleteStatus
    deleted_references: list[str] = field(default_factory=list)
    failed_references: list[BlobFailure] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status is DeleteStatus.DELETED


@dataclass
class BulkDeleteResult:
    results: list[DeleteResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def not_found(self) -> int:
        return sum(1 for r in self.results if r.status is DeleteStatus.NOT_FOUND)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded - self.not_found


class DeleteListings:
    """
    Use case: Delete listings together with every blob they own.

    Per listing, all blob deletions are attempted (concurrently) and checked
    as one gate before any row is touched. If even one blob is left behind,
    the listing and its gallery rows stay exactly as they were so the
    operator can retry. Only then are gallery rows removed, followed by the
    listing row.
    """

    def __init__(
        self,
        listing_repo: ListingRepository,
        delete_blob: DeleteBlob,
        event_publisher: EventPublisher,
    ) -> None:
        self._listing_repo = listing_repo
        self._delete_blob = delete_blob
        self._event_publisher = event_publisher

    async def execute_many(self, listing_ids: list[UUID]) -> BulkDeleteResult:
        bulk = BulkDeleteResult()
        # Sequential: each id is independent and one failure never blocks the next
        for listing_id in dict.fromkeys(listing_ids):
            bulk.results.append(await self.execute(listing_id))

        logger.info(
            "bulk_delete_completed",
            requested=len(bulk.results),
            succeeded=bulk.succeeded,
            failed=bulk.failed,
            not_found=bulk.not_found,
        )
        return bulk

    async def execute(self, listing_id: UUID) -> DeleteResult:
        # 1. Collect every reference the listing owns
        try:
            listing = await self._listing_repo.get_by_id(listing_id)
            images = await self._listing_repo.list_images(listing_id)
        except Exception as exc:
            logger.exception("listing_lookup_failed", listing_id=str(listing_id))
            return DeleteResult(listing_id, DeleteStatus.LOOKUP_FAILED, error=str(exc))

        if listing is None and not images:
            logger.info("listing_already_absent", listing_id=str(listing_id))
            return DeleteResult(listing_id, DeleteStatus.NOT_FOUND)

        references = collect_references(listing.image_url if listing else None, images)

        # 2. Attempt every blob deletion, no short-circuit
        outcomes = await asyncio.gather(*(self._remove_blob(url) for url in references))
        deleted = [url for url, error in outcomes if error is None]
        failed = [BlobFailure(url, error) for url, error in outcomes if error is not None]

        # 3. Gate: no relational change unless every blob is gone
        if failed:
            logger.error(
                "listing_delete_aborted_blobs_remaining",
                listing_id=str(listing_id),
                failed=[f.public_url for f in failed],
                deleted=len(deleted),
                total=len(references),
            )
            return DeleteResult(
                listing_id,
                DeleteStatus.BLOB_DELETE_FAILED,
                deleted_references=deleted,
                failed_references=failed,
                error=f"{len(failed)}/{len(references)} blob(s) could not be deleted",
            )

        # 4. Gallery rows first, then the listing row
        try:
            await self._listing_repo.delete_images(listing_id)
        except Exception as exc:
            logger.exception("listing_images_delete_failed", listing_id=str(listing_id))
            return DeleteResult(
                listing_id,
                DeleteStatus.IMAGE_ROWS_DELETE_FAILED,
                deleted_references=deleted,
                error=str(exc),
            )

        try:
            await self._listing_repo.delete(listing_id)
        except Exception as exc:
            logger.exception("listing_row_delete_failed", listing_id=str(listing_id))
            return DeleteResult(
                listing_id,
                DeleteStatus.LISTING_DELETE_FAILED,
                deleted_references=deleted,
                error=str(exc),
            )

        logger.info("listing_deleted", listing_id=str(listing_id), blobs=len(deleted))
        try:
            await self._event_publisher.publish(
                ListingDeletedEvent(listing_id=listing_id, blob_count=len(deleted))
            )
        except Exception:
            logger.exception("listing_event_publish_failed", listing_id=str(listing_id))

        return DeleteResult(listing_id, DeleteStatus.DELETED, deleted_references=deleted)

    async def _remove_blob(self, public_url: str) -> tuple[str, str | None]:
        try:
            await self._delete_blob.execute(public_url)
        except Exception as exc:
            logger.error("blob_delete_failed", url=public_url, error=str(exc))
            return public_url, str(exc)
        return public_url, None
