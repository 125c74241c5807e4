from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from src.application.use_cases.create_listing_batch import BatchStage
from src.application.use_cases.delete_listings import DeleteStatus


class ListingResponse(BaseModel):
    id: UUID
    title: str
    price: Decimal
    description: str | None = None
    holder_label: str | None = None
    image_url: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ListingDetailResponse(ListingResponse):
    gallery: list[str]


class PaginatedListingsResponse(BaseModel):
    listings: list[ListingResponse]
    total: int
    limit: int
    offset: int


class UpdateListingRequest(BaseModel):
    title: str
    price: str | Decimal  # "31m5", "1.000.000" or a plain number
    description: str | None = None
    holder_label: str | None = None


class BatchItemResponse(BaseModel):
    index: int
    raw_price: str
    price: Decimal
    original_name: str | None = None
    success: bool
    listing_id: UUID | None = None
    public_url: str | None = None
    stored_name: str | None = None
    gallery_linked: bool
    failed_stage: BatchStage | None = None
    error: str | None = None

    model_config = {"from_attributes": True}


class BatchResultResponse(BaseModel):
    succeeded: int
    failed: int
    partial_failure: bool
    items: list[BatchItemResponse]

    model_config = {"from_attributes": True}


class BlobFailureResponse(BaseModel):
    public_url: str
    error: str

    model_config = {"from_attributes": True}


class DeleteResultResponse(BaseModel):
    listing_id: UUID
    status: DeleteStatus
    success: bool
    deleted_references: list[str]
    failed_references: list[BlobFailureResponse]
    error: str | None = None

    model_config = {"from_attributes": True}


class BulkDeleteRequest(BaseModel):
    listing_ids: list[UUID] = Field(min_length=1)


class BulkDeleteResponse(BaseModel):
    succeeded: int
    failed: int
    not_found: int
    results: list[DeleteResultResponse]

    model_config = {"from_attributes": True}
