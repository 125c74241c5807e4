from pydantic import BaseModel, ConfigDict, Field


class UploadImageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    url: str
    file_name: str = Field(alias="fileName")


class DeleteImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # The storefront front-end posts camelCase
    image_url: str = Field(default="", alias="imageUrl")


class DeleteImageResponse(BaseModel):
    success: bool = True
    filename: str
    existed: bool


class ErrorResponse(BaseModel):
    error: str


class StorageUsageResponse(BaseModel):
    listing_count: int
    listing_image_count: int
    object_count: int
    total_bytes: int
    average_bytes_per_listing: float
    storage_limit_bytes: int
    remaining_bytes: int
    estimated_remaining_listings: int | None = None

    model_config = {"from_attributes": True}


class CleanupOrphansResponse(BaseModel):
    scanned: int
    dry_run: bool
    orphan_keys: list[str]
    deleted_keys: list[str]
    failed_keys: list[str]

    model_config = {"from_attributes": True}
