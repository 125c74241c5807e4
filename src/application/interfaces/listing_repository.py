from abc import ABC, abstractmethod
from decimal import Decimal
from uuid import UUID

from src.domain.entities.listing import Listing, ListingImage


class ListingRepository(ABC):
    """
    Port for persisting listings and their gallery images.

    Every call is its own unit of work; failures surface as
    RelationalFailureError.
    """

    @abstractmethod
    async def add(self, listing: Listing) -> Listing:
        ...

    @abstractmethod
    async def add_image(self, listing_id: UUID, image_url: str) -> ListingImage:
        ...

    @abstractmethod
    async def get_by_id(self, listing_id: UUID) -> Listing | None:
        ...

    @abstractmethod
    async def list_images(self, listing_id: UUID) -> list[ListingImage]:
        """Gallery images of a listing, oldest first."""
        ...

    @abstractmethod
    async def list_all(
        self, *, limit: int = 50, offset: int = 0
    ) -> tuple[list[Listing], int]:
        """Return (listings newest first, total_count)."""
        ...

    @abstractmethod
    async def update_details(
        self,
        listing_id: UUID,
        *,
        title: str,
        price: Decimal,
        description: str | None,
        holder_label: str | None,
    ) -> Listing | None:
        ...

    @abstractmethod
    async def delete_images(self, listing_id: UUID) -> int:
        """Delete every gallery row of a listing; returns the row count."""
        ...

    @abstractmethod
    async def delete(self, listing_id: UUID) -> bool:
        ...

    @abstractmethod
    async def count(self) -> tuple[int, int]:
        """Return (listing_count, listing_image_count)."""
        ...

    @abstractmethod
    async def all_image_references(self) -> set[str]:
        """Every primary and gallery image URL currently referenced."""
        ...
