from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from urllib.parse import unquote, urlsplit

import structlog

from src.application.interfaces.listing_repository import ListingRepository
from src.application.interfaces.object_store import ObjectStore, StoredObject
from src.domain.errors.lifecycle_errors import NotResolvableError
from src.domain.services.blob_key_resolver import BlobKeyResolver

logger = structlog.get_logger(__name__)

REMOVE_CHUNK_SIZE = 100


@dataclass
class CleanupOrphanBlobsOutput:
    scanned: int
    orphan_keys: list[str] = field(default_factory=list)
    deleted_keys: list[str] = field(default_factory=list)
    failed_keys: list[str] = field(default_factory=list)
    dry_run: bool = False


def _basename(reference: str) -> str:
    return unquote(urlsplit(reference).path.rstrip("/").rsplit("/", 1)[-1])


class CleanupOrphanBlobs:
    """
    Use case: Delete blobs that no listing or gallery row references.

    Objects younger than the grace period are left alone so uploads of a
    batch that has not inserted its rows yet are never reaped. References
    that cannot be resolved still protect any object with the same file name.
    """

    def __init__(
        self,
        listing_repo: ListingRepository,
        object_store: ObjectStore,
        resolver: BlobKeyResolver,
        grace_period: timedelta = timedelta(minutes=60),
    ) -> None:
        self._listing_repo = listing_repo
        self._object_store = object_store
        self._resolver = resolver
        self._grace_period = grace_period

    async def execute(
        self, *, dry_run: bool = False, now: datetime | None = None
    ) -> CleanupOrphanBlobsOutput:
        now = now or datetime.now(timezone.utc)
        references = await self._listing_repo.all_image_references()
        objects = await self._object_store.list_objects()

        referenced_keys: set[str] = set()
        referenced_names: set[str] = set()
        for reference in references:
            referenced_names.add(_basename(reference))
            try:
                referenced_keys.add(self._resolver.resolve(reference))
            except NotResolvableError:
                logger.warning("orphan_scan_unresolvable_reference", url=reference)

        orphans = [
            obj.key
            for obj in objects
            if obj.key not in referenced_keys
            and obj.key.rsplit("/", 1)[-1] not in referenced_names
            and self._is_past_grace(obj, now)
        ]
        output = CleanupOrphanBlobsOutput(
            scanned=len(objects), orphan_keys=orphans, dry_run=dry_run
        )
        logger.info("orphan_blobs_found", scanned=len(objects), orphans=len(orphans))
        if dry_run or not orphans:
            return output

        for start in range(0, len(orphans), REMOVE_CHUNK_SIZE):
            chunk = orphans[start : start + REMOVE_CHUNK_SIZE]
            try:
                await self._object_store.remove(chunk)
            except Exception as exc:
                logger.error("orphan_blob_remove_failed", keys=chunk, error=str(exc))
                output.failed_keys.extend(chunk)
            else:
                output.deleted_keys.extend(chunk)

        logger.info(
            "orphan_blobs_cleaned",
            deleted=len(output.deleted_keys),
            failed=len(output.failed_keys),
        )
        return output

    def _is_past_grace(self, obj: StoredObject, now: datetime) -> bool:
        # Unknown age: keep it
        if obj.created_at is None:
            return False
        return now - obj.created_at >= self._grace_period
