from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class ListingCreatedEvent(DomainEvent):
    """Published when a listing row is created from an uploaded image."""

    listing_id: UUID = field(default_factory=uuid4)
    title: str = ""
    price: str = "0"
    image_url: str = ""


@dataclass(frozen=True)
class ListingDeletedEvent(DomainEvent):
    """Published once a listing and every blob it owned are gone."""

    listing_id: UUID = field(default_factory=uuid4)
    blob_count: int = 0
