from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.application.interfaces.listing_repository import ListingRepository
from src.domain.entities.listing import Listing, ListingImage
from src.domain.errors.lifecycle_errors import RelationalFailureError
from src.infrastructure.database.connection import AsyncSessionLocal, session_scope
from src.infrastructure.database.models import ListingImageModel, ListingModel

logger = structlog.get_logger(__name__)


def _to_domain(model: ListingModel) -> Listing:
    return Listing(
        id=model.id,
        title=model.title,
        price=Decimal(str(model.price)),
        description=model.description,
        holder_label=model.holder_label,
        image_url=model.image_url,
        created_at=model.created_at,
    )


def _image_to_domain(model: ListingImageModel) -> ListingImage:
    return ListingImage(
        id=model.id,
        listing_id=model.listing_id,
        image_url=model.image_url,
        created_at=model.created_at,
    )


class SqlAlchemyListingRepository(ListingRepository):
    """
    SQLAlchemy implementation for listing persistence.

    Each method opens its own session, so concurrent callers (the batch
    create fan-out) never share one AsyncSession.
    """

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal
    ) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _unit_of_work(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with session_scope(self._session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("relational_operation_failed", operation=operation, error=str(exc))
            raise RelationalFailureError(f"{operation} failed: {exc}") from exc

    async def add(self, listing: Listing) -> Listing:
        async with self._unit_of_work("insert_listing") as session:
            model = ListingModel(
                id=listing.id,
                title=listing.title,
                price=listing.price,
                description=listing.description,
                holder_label=listing.holder_label,
                image_url=listing.image_url,
            )
            session.add(model)
            await session.flush()
            await session.refresh(model)
            listing.created_at = model.created_at
        return listing

    async def add_image(self, listing_id: UUID, image_url: str) -> ListingImage:
        async with self._unit_of_work("insert_listing_image") as session:
            model = ListingImageModel(listing_id=listing_id, image_url=image_url)
            session.add(model)
            await session.flush()
            await session.refresh(model)
            return _image_to_domain(model)

    async def get_by_id(self, listing_id: UUID) -> Listing | None:
        async with self._unit_of_work("select_listing") as session:
            model = await session.get(ListingModel, listing_id)
            return _to_domain(model) if model is not None else None

    async def list_images(self, listing_id: UUID) -> list[ListingImage]:
        async with self._unit_of_work("select_listing_images") as session:
            result = await session.execute(
                select(ListingImageModel)
                .where(ListingImageModel.listing_id == listing_id)
                .order_by(ListingImageModel.created_at.asc())
            )
            return [_image_to_domain(m) for m in result.scalars().all()]

    async def list_all(
        self, *, limit: int = 50, offset: int = 0
    ) -> tuple[list[Listing], int]:
        async with self._unit_of_work("select_listings") as session:
            result = await session.execute(
                select(ListingModel)
                .order_by(ListingModel.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            models = result.scalars().all()

            count_result = await session.execute(
                select(func.count()).select_from(ListingModel)
            )
            total = count_result.scalar_one()

        return [_to_domain(m) for m in models], total

    async def update_details(
        self,
        listing_id: UUID,
        *,
        title: str,
        price: Decimal,
        description: str | None,
        holder_label: str | None,
    ) -> Listing | None:
        async with self._unit_of_work("update_listing") as session:
            model = await session.get(ListingModel, listing_id)
            if model is None:
                return None
            model.title = title
            model.price = price
            model.description = description
            model.holder_label = holder_label
            await session.flush()
            return _to_domain(model)

    async def delete_images(self, listing_id: UUID) -> int:
        async with self._unit_of_work("delete_listing_images") as session:
            result = await session.execute(
                delete(ListingImageModel).where(ListingImageModel.listing_id == listing_id)
            )
            return result.rowcount or 0

    async def delete(self, listing_id: UUID) -> bool:
        async with self._unit_of_work("delete_listing") as session:
            result = await session.execute(
                delete(ListingModel).where(ListingModel.id == listing_id)
            )
            return bool(result.rowcount)

    async def count(self) -> tuple[int, int]:
        async with self._unit_of_work("count_listings") as session:
            listings = await session.execute(select(func.count()).select_from(ListingModel))
            images = await session.execute(
                select(func.count()).select_from(ListingImageModel)
            )
            return listings.scalar_one(), images.scalar_one()

    async def all_image_references(self) -> set[str]:
        async with self._unit_of_work("select_image_references") as session:
            primary = await session.execute(
                select(ListingModel.image_url).where(ListingModel.image_url.is_not(None))
            )
            gallery = await session.execute(select(ListingImageModel.image_url))
            return set(primary.scalars().all()) | set(gallery.scalars().all())
