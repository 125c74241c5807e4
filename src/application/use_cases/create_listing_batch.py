import asyncio
import secrets
import string
from collections.abc import Callable
from contextlib import nullcontext
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from uuid import UUID

import structlog

from src.application.interfaces.event_publisher import EventPublisher
from src.application.interfaces.listing_repository import ListingRepository
from src.application.use_cases.ingest_image import IngestImage
from src.domain.entities.listing import Listing
from src.domain.errors.lifecycle_errors import BatchFailedError, ValidationError
from src.domain.services.price_parser import parse_price

logger = structlog.get_logger(__name__)

TITLE_SUFFIX_LENGTH = 6
_TITLE_ALPHABET = string.digits + string.ascii_lowercase

# Progress sub-ranges (percent) for the two fan-out stages
UPLOAD_RANGE = (5.0, 50.0)
INSERT_RANGE = (50.0, 100.0)


class BatchStage(str, Enum):
    UPLOAD = "upload"
    INSERT = "insert"


@dataclass
class ImageUpload:
    data: bytes
    filename: str | None = None


@dataclass(frozen=True)
class BatchProgress:
    stage: BatchStage
    percent: float
    completed: int
    total: int


ProgressListener = Callable[[BatchProgress], None]


@dataclass
class CreateListingBatchInput:
    images: list[ImageUpload]
    prices: list[str | int | float | Decimal]  # matched to images by position
    holder_label: str | None = None
    max_concurrency: int | None = None


@dataclass
class BatchItemResult:
    index: int
    raw_price: str
    price: Decimal
    original_name: str | None = None
    public_url: str | None = None
    stored_name: str | None = None
    listing_id: UUID | None = None
    gallery_linked: bool = False
    failed_stage: BatchStage | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.failed_stage is None and self.listing_id is not None


@dataclass
class BatchResult:
    items: list[BatchItemResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def failed(self) -> int:
        return len(self.items) - self.succeeded

    @property
    def partial_failure(self) -> bool:
        return self.succeeded > 0 and self.failed > 0

    @property
    def failures(self) -> list[BatchItemResult]:
        return [item for item in self.items if not item.success]


class _ProgressTracker:
    """Maps completions inside one stage onto that stage's percent range."""

    def __init__(self, listener: ProgressListener | None) -> None:
        self._listener = listener

    def emit(self, stage: BatchStage, percent: float, completed: int = 0, total: int = 0) -> None:
        if self._listener is None:
            return
        try:
            self._listener(
                BatchProgress(stage=stage, percent=round(percent, 1), completed=completed, total=total)
            )
        except Exception:
            logger.exception("progress_listener_failed", stage=stage.value)

    def stage(self, stage: BatchStage, bounds: tuple[float, float], total: int) -> Callable[[], None]:
        start, end = bounds
        completed = 0

        def advance() -> None:
            nonlocal completed
            completed += 1
            self.emit(stage, start + (end - start) * completed / total, completed, total)

        return advance


class CreateListingBatch:
    """
    Use case: Turn a batch of uploaded images plus a price list into listings.

    Stage 1 ingests every image concurrently; stage 2 inserts one listing (and
    its gallery row) per successful upload, also concurrently. One item's
    failure never cancels or blocks another. The batch raises only when input
    is invalid (before any I/O) or when no item at all succeeded.
    """

    def __init__(
        self,
        ingest_image: IngestImage,
        listing_repo: ListingRepository,
        event_publisher: EventPublisher,
        *,
        title_prefix: str = "hieu_",
        default_description: str | None = None,
    ) -> None:
        self._ingest_image = ingest_image
        self._listing_repo = listing_repo
        self._event_publisher = event_publisher
        self._title_prefix = title_prefix
        self._default_description = default_description

    async def execute(
        self,
        input_data: CreateListingBatchInput,
        progress: ProgressListener | None = None,
    ) -> BatchResult:
        prices = self._validate(input_data)
        holder_label = (input_data.holder_label or "").strip() or None

        result = BatchResult(
            items=[
                BatchItemResult(
                    index=index,
                    raw_price=str(input_data.prices[index]),
                    price=prices[index],
                    original_name=image.filename,
                )
                for index, image in enumerate(input_data.images)
            ]
        )
        limiter = (
            asyncio.Semaphore(input_data.max_concurrency)
            if input_data.max_concurrency
            else None
        )
        tracker = _ProgressTracker(progress)

        logger.info(
            "listing_batch_started",
            images=len(input_data.images),
            max_concurrency=input_data.max_concurrency,
        )

        # Stage 1: uploads
        tracker.emit(BatchStage.UPLOAD, UPLOAD_RANGE[0], 0, len(result.items))
        advance = tracker.stage(BatchStage.UPLOAD, UPLOAD_RANGE, len(result.items))
        await asyncio.gather(
            *(
                self._upload(item, image, limiter, advance)
                for item, image in zip(result.items, input_data.images)
            )
        )

        uploaded = [item for item in result.items if item.failed_stage is None]
        if not uploaded:
            logger.error("listing_batch_failed", stage=BatchStage.UPLOAD.value, failed=result.failed)
            raise BatchFailedError(result)

        # Stage 2: relational inserts for successful uploads only
        tracker.emit(BatchStage.INSERT, INSERT_RANGE[0], 0, len(uploaded))
        advance = tracker.stage(BatchStage.INSERT, INSERT_RANGE, len(uploaded))
        await asyncio.gather(
            *(self._insert(item, holder_label, limiter, advance) for item in uploaded)
        )

        logger.info(
            "listing_batch_completed",
            succeeded=result.succeeded,
            failed=result.failed,
            missing_gallery=sum(1 for i in result.items if i.success and not i.gallery_linked),
        )
        if result.succeeded == 0:
            raise BatchFailedError(result)
        return result

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    @staticmethod
    def _validate(input_data: CreateListingBatchInput) -> list[Decimal]:
        images, prices = input_data.images, input_data.prices
        if not images:
            raise ValidationError("At least one image is required.")
        if len(prices) < len(images):
            raise ValidationError(
                f"{len(images)} images were submitted but only {len(prices)} prices."
            )
        if input_data.max_concurrency is not None and input_data.max_concurrency < 1:
            raise ValidationError("max_concurrency must be at least 1.")

        parsed: list[Decimal] = []
        for index in range(len(images)):
            try:
                parsed.append(parse_price(prices[index]))
            except ValidationError as exc:
                raise ValidationError(f"Price #{index + 1} is invalid: {exc}") from exc
        return parsed

    # -------------------------------------------------------------------------
    # Per-item branches (each writes only to its own BatchItemResult)
    # -------------------------------------------------------------------------

    async def _upload(
        self,
        item: BatchItemResult,
        image: ImageUpload,
        limiter: asyncio.Semaphore | None,
        advance: Callable[[], None],
    ) -> None:
        try:
            async with limiter or nullcontext():
                ingested = await self._ingest_image.execute(image.data, image.filename)
            item.public_url = ingested.public_url
            item.stored_name = ingested.stored_name
        except Exception as exc:
            logger.exception("batch_upload_failed", index=item.index, filename=image.filename)
            item.failed_stage = BatchStage.UPLOAD
            item.error = str(exc)
        finally:
            advance()

    async def _insert(
        self,
        item: BatchItemResult,
        holder_label: str | None,
        limiter: asyncio.Semaphore | None,
        advance: Callable[[], None],
    ) -> None:
        try:
            async with limiter or nullcontext():
                listing = await self._create_listing(item, holder_label)
        except Exception as exc:
            # The uploaded blob is now an orphan; cleanup_orphan_blobs reclaims it
            logger.exception(
                "failed_to_create_listing",
                index=item.index,
                url=item.public_url,
                stored_name=item.stored_name,
            )
            item.failed_stage = BatchStage.INSERT
            item.error = str(exc)
            return
        finally:
            advance()

        try:
            await self._event_publisher.publish_many(listing.collect_events())
        except Exception:
            logger.exception("listing_event_publish_failed", listing_id=str(listing.id))

    async def _create_listing(self, item: BatchItemResult, holder_label: str | None) -> Listing:
        listing = Listing.create(
            title=self._generate_title(),
            price=item.price,
            image_url=item.public_url,
            holder_label=holder_label,
            description=self._default_description,
        )
        await self._listing_repo.add(listing)
        item.listing_id = listing.id

        try:
            await self._listing_repo.add_image(listing.id, item.public_url or "")
            item.gallery_linked = True
        except Exception as exc:
            # The listing stays: its primary image is valid, only the gallery row is missing
            logger.error(
                "listing_gallery_entry_missing",
                listing_id=str(listing.id),
                url=item.public_url,
                error=str(exc),
            )

        logger.info(
            "listing_created",
            listing_id=str(listing.id),
            title=listing.title,
            price=str(listing.price),
        )
        return listing

    def _generate_title(self) -> str:
        suffix = "".join(secrets.choice(_TITLE_ALPHABET) for _ in range(TITLE_SUFFIX_LENGTH))
        return f"{self._title_prefix}{suffix}"
