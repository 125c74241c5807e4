"""Unit tests for the read/edit/maintenance use cases behind the admin routes."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from src.application.use_cases.cleanup_orphan_blobs import CleanupOrphanBlobs
from src.application.use_cases.get_listing import GetListing, ListingNotFoundError
from src.application.use_cases.get_storage_usage import GetStorageUsage
from src.application.use_cases.update_listing import UpdateListing, UpdateListingInput
from src.domain.entities.listing import ListingImage
from src.domain.errors.lifecycle_errors import ValidationError
from tests.fakes import InMemoryListingRepository, InMemoryObjectStore, make_resolver, seed_listing


class TestGetListing:
    @pytest.mark.asyncio
    async def test_gallery_lists_primary_first_without_duplicates(self) -> None:
        store, repo = InMemoryObjectStore(), InMemoryListingRepository()
        listing = seed_listing(repo, store, primary_key="p.jpg", gallery_keys=["p.jpg", "g.jpg"])

        output = await GetListing(repo).execute(listing.id)

        assert output.listing is listing
        assert output.gallery == [store.get_public_url("p.jpg"), store.get_public_url("g.jpg")]

    @pytest.mark.asyncio
    async def test_missing_listing_raises(self) -> None:
        with pytest.raises(ListingNotFoundError):
            await GetListing(InMemoryListingRepository()).execute(uuid4())


class TestUpdateListing:
    @pytest.mark.asyncio
    async def test_updates_details_and_parses_price(self) -> None:
        store, repo = InMemoryObjectStore(), InMemoryListingRepository()
        listing = seed_listing(repo, store, primary_key="p.jpg", gallery_keys=["p.jpg"])

        updated = await UpdateListing(repo).execute(
            UpdateListingInput(
                listing_id=listing.id,
                title="  VIP account ",
                price="31m5",
                description="  ",
                holder_label="Lan",
            )
        )

        assert updated.title == "VIP account"
        assert updated.price == Decimal("31500000")
        assert updated.description is None
        assert updated.holder_label == "Lan"
        # Image ownership is untouched
        assert updated.image_url == store.get_public_url("p.jpg")
        assert len(repo.images) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("title", "price"), [("", "1m"), ("ok", ""), ("ok", "0")])
    async def test_invalid_input_is_rejected(self, title: str, price: str) -> None:
        with pytest.raises(ValidationError):
            await UpdateListing(InMemoryListingRepository()).execute(
                UpdateListingInput(listing_id=uuid4(), title=title, price=price)
            )

    @pytest.mark.asyncio
    async def test_sub_cent_price_is_rejected_and_listing_unchanged(self) -> None:
        store, repo = InMemoryObjectStore(), InMemoryListingRepository()
        listing = seed_listing(repo, store, gallery_keys=["g.jpg"])

        with pytest.raises(ValidationError):
            await UpdateListing(repo).execute(
                UpdateListingInput(listing_id=listing.id, title="x", price=Decimal("0.001"))
            )
        assert repo.listings[listing.id].price == Decimal("52000000")

    @pytest.mark.asyncio
    async def test_missing_listing_raises(self) -> None:
        with pytest.raises(ListingNotFoundError):
            await UpdateListing(InMemoryListingRepository()).execute(
                UpdateListingInput(listing_id=uuid4(), title="x", price="1m")
            )


class TestGetStorageUsage:
    @pytest.mark.asyncio
    async def test_reports_usage_against_limit(self) -> None:
        store, repo = InMemoryObjectStore(), InMemoryListingRepository()
        seed_listing(repo, store, primary_key="a.jpg", gallery_keys=["a.jpg"])
        seed_listing(repo, store, primary_key="b.jpg", gallery_keys=["b.jpg", "c.jpg"])
        store.objects.update({"a.jpg": b"x" * 100, "b.jpg": b"y" * 200, "c.jpg": b"z" * 100})

        usage = await GetStorageUsage(repo, store, storage_limit_bytes=1000).execute()

        assert usage.listing_count == 2
        assert usage.listing_image_count == 3
        assert usage.object_count == 3
        assert usage.total_bytes == 400
        assert usage.average_bytes_per_listing == 200.0
        assert usage.remaining_bytes == 600
        assert usage.estimated_remaining_listings == 3

    @pytest.mark.asyncio
    async def test_empty_store(self) -> None:
        usage = await GetStorageUsage(
            InMemoryListingRepository(), InMemoryObjectStore(), storage_limit_bytes=1000
        ).execute()

        assert usage.total_bytes == 0
        assert usage.average_bytes_per_listing == 0.0
        assert usage.estimated_remaining_listings is None


class TestCleanupOrphanBlobs:
    def _make(self) -> tuple[CleanupOrphanBlobs, InMemoryObjectStore, InMemoryListingRepository]:
        store, repo = InMemoryObjectStore(), InMemoryListingRepository()
        use_case = CleanupOrphanBlobs(
            repo, store, make_resolver(), grace_period=timedelta(minutes=60)
        )
        return use_case, store, repo

    @pytest.mark.asyncio
    async def test_removes_only_old_unreferenced_objects(self) -> None:
        use_case, store, repo = self._make()
        seed_listing(repo, store, primary_key="kept.jpg", gallery_keys=["kept.jpg"])
        store.put("old-orphan.jpg", age=timedelta(hours=3))
        store.put("fresh-orphan.jpg", age=timedelta(minutes=5))
        store.put("unknown-age.jpg")
        del store.created_at["unknown-age.jpg"]

        output = await use_case.execute()

        assert output.scanned == 4
        assert output.orphan_keys == ["old-orphan.jpg"]
        assert output.deleted_keys == ["old-orphan.jpg"]
        assert set(store.objects) == {"kept.jpg", "fresh-orphan.jpg", "unknown-age.jpg"}

    @pytest.mark.asyncio
    async def test_gallery_reference_by_filename_protects_object(self) -> None:
        use_case, store, repo = self._make()
        store.put("legacy.jpg")
        repo.images.append(
            ListingImage(listing_id=uuid4(), image_url="https://old-cdn.example.com/x/legacy.jpg")
        )

        output = await use_case.execute()

        assert output.orphan_keys == []
        assert "legacy.jpg" in store.objects

    @pytest.mark.asyncio
    async def test_dry_run_reports_without_removing(self) -> None:
        use_case, store, _ = self._make()
        store.put("orphan.jpg")

        output = await use_case.execute(dry_run=True)

        assert output.dry_run is True
        assert output.orphan_keys == ["orphan.jpg"]
        assert output.deleted_keys == []
        assert store.remove_calls == []

    @pytest.mark.asyncio
    async def test_removes_in_chunks_and_reports_failed_chunk(self) -> None:
        use_case, store, _ = self._make()
        for n in range(250):
            store.put(f"orphan-{n:03d}.jpg")
        store.fail_remove_for.add("orphan-150.jpg")

        output = await use_case.execute(now=datetime.now(timezone.utc))

        assert [len(call) for call in store.remove_calls] == [100, 100, 50]
        assert len(output.deleted_keys) == 150
        assert len(output.failed_keys) == 100
        assert "orphan-150.jpg" in output.failed_keys
