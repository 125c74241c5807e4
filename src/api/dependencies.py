"""
FastAPI dependency injection wiring.

Each dependency function returns a fully-constructed object with its
collaborators injected, keeping the route handlers thin.
"""
import secrets
from datetime import timedelta

from fastapi import Depends, Header, HTTPException, status

from src.application.interfaces.event_publisher import EventPublisher
from src.application.interfaces.image_transcoder import ImageTranscoder
from src.application.interfaces.listing_repository import ListingRepository
from src.application.interfaces.object_store import ObjectStore
from src.application.use_cases.cleanup_orphan_blobs import CleanupOrphanBlobs
from src.application.use_cases.create_listing_batch import CreateListingBatch
from src.application.use_cases.delete_blob import DeleteBlob
from src.application.use_cases.delete_listings import DeleteListings
from src.application.use_cases.get_listing import GetListing
from src.application.use_cases.get_storage_usage import GetStorageUsage
from src.application.use_cases.ingest_image import IngestImage
from src.application.use_cases.update_listing import UpdateListing
from src.config import settings
from src.domain.services.blob_key_resolver import BlobKeyResolver
from src.infrastructure.database.repositories.listing_repository import (
    SqlAlchemyListingRepository,
)
from src.infrastructure.imaging.pillow_transcoder import PillowImageTranscoder
from src.infrastructure.messaging.noop_publisher import NoOpEventPublisher
from src.infrastructure.messaging.rabbitmq_publisher import RabbitMQPublisher
from src.infrastructure.storage.supabase_storage_client import SupabaseStorageClient


# ---- Access -----------------------------------------------------------------

def require_privileged_caller(x_admin_key: str | None = Header(default=None)) -> None:
    """Privileged-caller capability: the admin key header must match the configured key."""
    expected = settings.admin_api_key
    if not expected or not x_admin_key or not secrets.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required.")


# ---- Low-level dependencies ------------------------------------------------

def get_listing_repo() -> ListingRepository:
    return SqlAlchemyListingRepository()


def get_object_store() -> ObjectStore:
    return SupabaseStorageClient()


def get_transcoder() -> ImageTranscoder:
    return PillowImageTranscoder()


def get_blob_key_resolver() -> BlobKeyResolver:
    return BlobKeyResolver(bucket=settings.storage_bucket, base_url=settings.storage_url)


def get_event_publisher() -> EventPublisher:
    if settings.publish_events:
        return RabbitMQPublisher()
    return NoOpEventPublisher()


# ---- Use-case dependencies -------------------------------------------------

def get_ingest_image_use_case(
    object_store: ObjectStore = Depends(get_object_store),
    transcoder: ImageTranscoder = Depends(get_transcoder),
    resolver: BlobKeyResolver = Depends(get_blob_key_resolver),
) -> IngestImage:
    return IngestImage(object_store, transcoder, resolver)


def get_delete_blob_use_case(
    object_store: ObjectStore = Depends(get_object_store),
    resolver: BlobKeyResolver = Depends(get_blob_key_resolver),
) -> DeleteBlob:
    return DeleteBlob(object_store, resolver)


def get_create_batch_use_case(
    ingest_image: IngestImage = Depends(get_ingest_image_use_case),
    listing_repo: ListingRepository = Depends(get_listing_repo),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> CreateListingBatch:
    return CreateListingBatch(
        ingest_image,
        listing_repo,
        event_publisher,
        title_prefix=settings.listing_title_prefix,
        default_description=settings.listing_default_description,
    )


def get_delete_listings_use_case(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    delete_blob: DeleteBlob = Depends(get_delete_blob_use_case),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> DeleteListings:
    return DeleteListings(listing_repo, delete_blob, event_publisher)


def get_listing_use_case(
    listing_repo: ListingRepository = Depends(get_listing_repo),
) -> GetListing:
    return GetListing(listing_repo)


def get_update_listing_use_case(
    listing_repo: ListingRepository = Depends(get_listing_repo),
) -> UpdateListing:
    return UpdateListing(listing_repo)


def get_storage_usage_use_case(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    object_store: ObjectStore = Depends(get_object_store),
) -> GetStorageUsage:
    return GetStorageUsage(listing_repo, object_store, settings.storage_limit_bytes)


def get_cleanup_orphans_use_case(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    object_store: ObjectStore = Depends(get_object_store),
    resolver: BlobKeyResolver = Depends(get_blob_key_resolver),
) -> CleanupOrphanBlobs:
    return CleanupOrphanBlobs(
        listing_repo,
        object_store,
        resolver,
        grace_period=timedelta(minutes=settings.orphan_grace_minutes),
    )
