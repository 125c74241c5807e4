"""Unit tests for batch listing creation; storage and database are in-memory fakes."""
import asyncio
import re
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.application.use_cases.create_listing_batch import (
    BatchProgress,
    BatchStage,
    CreateListingBatch,
    CreateListingBatchInput,
    ImageUpload,
)
from src.application.use_cases.ingest_image import IngestImage
from src.domain.errors.lifecycle_errors import BatchFailedError, ValidationError
from tests.fakes import (
    FakeTranscoder,
    InMemoryListingRepository,
    InMemoryObjectStore,
    make_resolver,
)


class _ConcurrencyTrackingStore(InMemoryObjectStore):
    def __init__(self) -> None:
        super().__init__()
        self.in_flight = 0
        self.max_in_flight = 0

    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        try:
            await super().upload(key, data, content_type)
        finally:
            self.in_flight -= 1


def _make_publisher() -> MagicMock:
    pub = MagicMock()
    pub.publish = AsyncMock()
    pub.publish_many = AsyncMock()
    return pub


def _images(*names: str) -> list[ImageUpload]:
    return [ImageUpload(data=f"bytes-of-{name}".encode(), filename=name) for name in names]


def _make_use_case(
    store: InMemoryObjectStore | None = None,
    repo: InMemoryListingRepository | None = None,
    publisher: MagicMock | None = None,
) -> tuple[CreateListingBatch, InMemoryObjectStore, InMemoryListingRepository, MagicMock]:
    store = store or InMemoryObjectStore()
    repo = repo or InMemoryListingRepository()
    publisher = publisher or _make_publisher()
    ingest = IngestImage(store, FakeTranscoder(), make_resolver())
    use_case = CreateListingBatch(
        ingest,
        repo,
        publisher,
        title_prefix="hieu_",
        default_description="Tài khoản chính chủ",
    )
    return use_case, store, repo, publisher


class TestCreateListingBatch:
    @pytest.mark.asyncio
    async def test_creates_one_listing_per_image_in_price_order(self) -> None:
        use_case, store, repo, publisher = _make_use_case()
        progress: list[BatchProgress] = []

        result = await use_case.execute(
            CreateListingBatchInput(
                images=_images("a.jpg", "b.jpg", "c.jpg"),
                prices=["52m", "54m", "50m"],
                holder_label=" Minh ",
            ),
            progress=progress.append,
        )

        assert result.succeeded == 3
        assert result.failed == 0
        assert [item.price for item in result.items] == [
            Decimal("52000000"),
            Decimal("54000000"),
            Decimal("50000000"),
        ]
        assert len(store.objects) == 3
        assert len(repo.listings) == 3
        assert len(repo.images) == 3

        for item in result.items:
            listing = repo.listings[item.listing_id]
            assert re.fullmatch(r"hieu_[0-9a-z]{6}", listing.title)
            assert listing.price == item.price
            assert listing.image_url == item.public_url
            assert listing.holder_label == "Minh"
            assert listing.description == "Tài khoản chính chủ"
            assert item.gallery_linked is True
            assert make_resolver().resolve(listing.image_url) in store.objects

        assert publisher.publish_many.await_count == 3

        percents = [p.percent for p in progress]
        assert percents == sorted(percents)
        assert percents[0] == 5.0
        assert percents[-1] == 100.0
        assert {p.stage for p in progress} == {BatchStage.UPLOAD, BatchStage.INSERT}

    @pytest.mark.asyncio
    async def test_extra_prices_are_ignored(self) -> None:
        use_case, _, repo, _ = _make_use_case()

        result = await use_case.execute(
            CreateListingBatchInput(images=_images("a.jpg"), prices=["52m", "54m"])
        )

        assert result.succeeded == 1
        assert len(repo.listings) == 1

    @pytest.mark.asyncio
    async def test_fewer_prices_than_images_is_rejected_before_any_upload(self) -> None:
        use_case, store, repo, _ = _make_use_case()

        with pytest.raises(ValidationError):
            await use_case.execute(
                CreateListingBatchInput(
                    images=_images("a.jpg", "b.jpg", "c.jpg"), prices=["52m", "54m"]
                )
            )

        assert store.upload_calls == 0
        assert repo.listings == {}

    @pytest.mark.asyncio
    async def test_invalid_price_names_its_position(self) -> None:
        use_case, store, _, _ = _make_use_case()

        with pytest.raises(ValidationError, match="Price #2"):
            await use_case.execute(
                CreateListingBatchInput(images=_images("a.jpg", "b.jpg"), prices=["52m", "abc"])
            )
        assert store.upload_calls == 0

    @pytest.mark.asyncio
    async def test_oversized_price_is_rejected_before_any_upload(self) -> None:
        use_case, store, repo, _ = _make_use_case()

        with pytest.raises(ValidationError, match="Price #1"):
            await use_case.execute(
                CreateListingBatchInput(images=_images("a.jpg"), prices=["10000000m"])
            )

        assert store.upload_calls == 0
        assert repo.listings == {}

    @pytest.mark.asyncio
    async def test_empty_batch_is_rejected(self) -> None:
        use_case, _, _, _ = _make_use_case()

        with pytest.raises(ValidationError):
            await use_case.execute(CreateListingBatchInput(images=[], prices=[]))

    @pytest.mark.asyncio
    async def test_non_positive_concurrency_is_rejected(self) -> None:
        use_case, _, _, _ = _make_use_case()

        with pytest.raises(ValidationError):
            await use_case.execute(
                CreateListingBatchInput(images=_images("a.jpg"), prices=["1m"], max_concurrency=0)
            )

    @pytest.mark.asyncio
    async def test_one_failed_upload_does_not_block_the_others(self) -> None:
        store = InMemoryObjectStore()
        store.fail_upload_for.add("broken")
        use_case, _, repo, _ = _make_use_case(store=store)

        result = await use_case.execute(
            CreateListingBatchInput(
                images=_images("a.jpg", "broken.jpg", "c.jpg"), prices=["1m", "2m", "3m"]
            )
        )

        assert result.succeeded == 2
        assert result.partial_failure is True
        [failure] = result.failures
        assert failure.index == 1
        assert failure.failed_stage is BatchStage.UPLOAD
        assert failure.error
        assert sorted(l.price for l in repo.listings.values()) == [
            Decimal("1000000"),
            Decimal("3000000"),
        ]

    @pytest.mark.asyncio
    async def test_all_uploads_failing_raises_with_per_item_detail(self) -> None:
        store = InMemoryObjectStore()
        store.fail_upload_for.add("broken")
        use_case, _, repo, _ = _make_use_case(store=store)

        with pytest.raises(BatchFailedError) as exc_info:
            await use_case.execute(
                CreateListingBatchInput(
                    images=_images("broken1.jpg", "broken2.jpg"), prices=["1m", "2m"]
                )
            )

        assert exc_info.value.result.failed == 2
        assert all(i.failed_stage is BatchStage.UPLOAD for i in exc_info.value.result.items)
        assert repo.listings == {}

    @pytest.mark.asyncio
    async def test_missing_gallery_row_keeps_the_listing(self) -> None:
        repo = InMemoryListingRepository()
        repo.fail_on.add("add_image")
        use_case, _, _, _ = _make_use_case(repo=repo)

        result = await use_case.execute(
            CreateListingBatchInput(images=_images("a.jpg"), prices=["52m"])
        )

        [item] = result.items
        assert item.success is True
        assert item.gallery_linked is False
        assert item.listing_id in repo.listings
        assert repo.images == []

    @pytest.mark.asyncio
    async def test_insert_failure_leaves_blob_for_cleanup_and_reports_stage(self) -> None:
        repo = InMemoryListingRepository()
        repo.fail_on.add("add")
        use_case, store, _, _ = _make_use_case(repo=repo)

        with pytest.raises(BatchFailedError) as exc_info:
            await use_case.execute(
                CreateListingBatchInput(images=_images("a.jpg"), prices=["52m"])
            )

        [item] = exc_info.value.result.items
        assert item.failed_stage is BatchStage.INSERT
        assert item.stored_name in store.objects

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_fail_the_item(self) -> None:
        publisher = _make_publisher()
        publisher.publish_many.side_effect = RuntimeError("broker down")
        use_case, _, repo, _ = _make_use_case(publisher=publisher)

        result = await use_case.execute(
            CreateListingBatchInput(images=_images("a.jpg", "b.jpg"), prices=["1m", "2m"])
        )

        assert result.succeeded == 2
        assert len(repo.listings) == 2

    @pytest.mark.asyncio
    async def test_max_concurrency_bounds_parallel_uploads(self) -> None:
        store = _ConcurrencyTrackingStore()
        use_case, _, _, _ = _make_use_case(store=store)

        result = await use_case.execute(
            CreateListingBatchInput(
                images=_images("a.jpg", "b.jpg", "c.jpg"),
                prices=["1m", "2m", "3m"],
                max_concurrency=1,
            )
        )

        assert result.succeeded == 3
        assert store.max_in_flight == 1
