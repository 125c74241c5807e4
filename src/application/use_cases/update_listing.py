from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

import structlog

from src.application.interfaces.listing_repository import ListingRepository
from src.application.use_cases.get_listing import ListingNotFoundError
from src.domain.entities.listing import Listing
from src.domain.errors.lifecycle_errors import ValidationError
from src.domain.services.price_parser import parse_price

logger = structlog.get_logger(__name__)


@dataclass
class UpdateListingInput:
    listing_id: UUID
    title: str
    price: str | int | float | Decimal
    description: str | None = None
    holder_label: str | None = None


class UpdateListing:
    """
    Use case: Edit a listing's metadata.

    Image ownership never changes here; only title, price, description and
    holder label are written.
    """

    def __init__(self, listing_repo: ListingRepository) -> None:
        self._listing_repo = listing_repo

    async def execute(self, input_data: UpdateListingInput) -> Listing:
        title = input_data.title.strip()
        if not title:
            raise ValidationError("Title is required.")
        if isinstance(input_data.price, str) and not input_data.price.strip():
            raise ValidationError("Price is required.")
        price = parse_price(input_data.price)

        listing = await self._listing_repo.update_details(
            input_data.listing_id,
            title=title,
            price=price,
            description=(input_data.description or "").strip() or None,
            holder_label=(input_data.holder_label or "").strip() or None,
        )
        if listing is None:
            raise ListingNotFoundError(input_data.listing_id)

        logger.info(
            "listing_updated",
            listing_id=str(listing.id),
            title=listing.title,
            price=str(listing.price),
        )
        return listing
