from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from src.domain.events.domain_events import (
    DomainEvent,
    ListingCreatedEvent,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ListingImage:
    """An additional gallery image attached to exactly one listing."""

    listing_id: UUID
    image_url: str
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class Listing:
    """
    A digital account offered for sale.

    The blobs a listing owns are its primary image plus every gallery image;
    see owned_references().
    """

    # Identity
    id: UUID = field(default_factory=uuid4)

    title: str = ""
    price: Decimal = Decimal("0")
    description: str | None = None
    holder_label: str | None = None  # admin-only "primary holder"
    image_url: str | None = None

    created_at: datetime = field(default_factory=_utcnow)

    # Pending domain events (collected and cleared by the application layer)
    _events: list[DomainEvent] = field(default_factory=list, repr=False, compare=False)

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        *,
        title: str,
        price: Decimal,
        image_url: str | None,
        holder_label: str | None = None,
        description: str | None = None,
    ) -> "Listing":
        listing = cls(
            title=title,
            price=price,
            image_url=image_url,
            holder_label=holder_label,
            description=description,
        )
        listing._events.append(
            ListingCreatedEvent(
                listing_id=listing.id,
                title=title,
                price=str(price),
                image_url=image_url or "",
            )
        )
        return listing

    # -------------------------------------------------------------------------
    # Behaviour
    # -------------------------------------------------------------------------

    def owned_references(self, images: list[ListingImage]) -> list[str]:
        """Every blob reference owned by this listing, de-duplicated, in order."""
        return collect_references(self.image_url, images)

    def collect_events(self) -> list[DomainEvent]:
        """Return pending events and clear the internal buffer."""
        events = list(self._events)
        self._events.clear()
        return events


def collect_references(primary: str | None, images: list[ListingImage]) -> list[str]:
    references: list[str] = []
    for url in [primary, *(image.image_url for image in images)]:
        if url and url not in references:
            references.append(url)
    return references
