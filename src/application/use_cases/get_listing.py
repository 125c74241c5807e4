from dataclasses import dataclass
from uuid import UUID

from src.application.interfaces.listing_repository import ListingRepository
from src.domain.entities.listing import Listing


class ListingNotFoundError(Exception):
    def __init__(self, listing_id: UUID) -> None:
        super().__init__(f"Listing {listing_id} not found.")


@dataclass
class GetListingOutput:
    listing: Listing
    gallery: list[str]  # primary image first, then gallery rows oldest first


class GetListing:
    """Use case: Fetch one listing with its de-duplicated image gallery."""

    def __init__(self, listing_repo: ListingRepository) -> None:
        self._listing_repo = listing_repo

    async def execute(self, listing_id: UUID) -> GetListingOutput:
        listing = await self._listing_repo.get_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)

        images = await self._listing_repo.list_images(listing_id)
        return GetListingOutput(listing=listing, gallery=listing.owned_references(images))
