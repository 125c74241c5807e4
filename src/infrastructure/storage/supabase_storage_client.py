"""HTTP client for the Supabase Storage bucket holding listing images."""
from datetime import datetime, timezone
from urllib.parse import quote

import httpx
import structlog

from src.application.interfaces.object_store import ObjectStore, StoredObject
from src.config import settings
from src.domain.errors.lifecycle_errors import (
    StorageNotConfiguredError,
    StoreUnavailableError,
    WriteConflictError,
)
from src.domain.services.blob_key_resolver import BlobKeyResolver

logger = structlog.get_logger(__name__)

LIST_PAGE_SIZE = 1000


def _is_duplicate(response: httpx.Response) -> bool:
    if response.status_code == 409:
        return True
    # Older Storage API versions answer 400 with the real status in the body
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and (
        str(body.get("statusCode")) == "409" or body.get("error") == "Duplicate"
    )


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class SupabaseStorageClient(ObjectStore):
    """Thin HTTP wrapper around the Supabase Storage REST API for one bucket."""

    def __init__(
        self,
        base_url: str = settings.storage_url,
        service_key: str = settings.storage_service_key,
        bucket: str = settings.storage_bucket,
        timeout: float = settings.storage_timeout_seconds,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._service_key = service_key.strip()
        self._bucket = bucket
        self._timeout = timeout
        self._transport = transport
        self._resolver = BlobKeyResolver(bucket=bucket, base_url=self._base_url)

    @property
    def is_configured(self) -> bool:
        return bool(self._base_url and self._service_key)

    def _client(self) -> httpx.AsyncClient:
        if not self.is_configured:
            raise StorageNotConfiguredError(
                "Object store is not configured: missing storage URL or service key"
            )
        return httpx.AsyncClient(
            base_url=f"{self._base_url}/storage/v1",
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._service_key}",
                "apikey": self._service_key,
            },
        )

    def _object_path(self, key: str) -> str:
        return f"/object/{self._bucket}/{quote(key, safe='/')}"

    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        """POST /object/{bucket}/{key} without upsert."""
        async with self._client() as client:
            try:
                response = await client.post(
                    self._object_path(key),
                    content=data,
                    headers={"Content-Type": content_type, "x-upsert": "false"},
                )
            except httpx.RequestError as exc:
                logger.error("storage_connection_failed", operation="upload", error=str(exc))
                raise StoreUnavailableError(f"Failed to reach object store: {exc}") from exc

        if response.is_success:
            logger.info("blob_uploaded", key=key, size=len(data))
            return
        if _is_duplicate(response):
            logger.warning("blob_upload_conflict", key=key)
            raise WriteConflictError(key)
        logger.error(
            "blob_upload_failed",
            key=key,
            status_code=response.status_code,
            response=response.text,
        )
        raise StoreUnavailableError(
            f"Object store returned {response.status_code} on upload: {response.text}"
        )

    async def remove(self, keys: list[str]) -> list[str]:
        """DELETE /object/{bucket} with ``{"prefixes": keys}``; returns the removed names."""
        if not keys:
            return []
        async with self._client() as client:
            try:
                response = await client.request(
                    "DELETE", f"/object/{self._bucket}", json={"prefixes": keys}
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                logger.error(
                    "blob_remove_failed",
                    keys=keys,
                    status_code=exc.response.status_code,
                    response=exc.response.text,
                )
                raise StoreUnavailableError(
                    f"Object store returned {exc.response.status_code} on remove: "
                    f"{exc.response.text}"
                ) from exc
            except httpx.RequestError as exc:
                logger.error("storage_connection_failed", operation="remove", error=str(exc))
                raise StoreUnavailableError(f"Failed to reach object store: {exc}") from exc

        removed = [item.get("name") for item in response.json() if item.get("name")]
        logger.info("blobs_removed", requested=len(keys), removed=len(removed))
        return removed

    def get_public_url(self, key: str) -> str:
        if not self._base_url:
            raise StorageNotConfiguredError("Object store is not configured: missing storage URL")
        return self._resolver.public_url(key)

    async def list_objects(self, prefix: str = "") -> list[StoredObject]:
        """POST /object/list/{bucket}, paging until a short page comes back."""
        objects: list[StoredObject] = []
        offset = 0
        async with self._client() as client:
            while True:
                try:
                    response = await client.post(
                        f"/object/list/{self._bucket}",
                        json={
                            "prefix": prefix,
                            "limit": LIST_PAGE_SIZE,
                            "offset": offset,
                            "sortBy": {"column": "name", "order": "asc"},
                        },
                    )
                    response.raise_for_status()
                except httpx.HTTPStatusError as exc:
                    logger.error(
                        "blob_list_failed",
                        prefix=prefix,
                        status_code=exc.response.status_code,
                    )
                    raise StoreUnavailableError(
                        f"Object store returned {exc.response.status_code} on list"
                    ) from exc
                except httpx.RequestError as exc:
                    logger.error("storage_connection_failed", operation="list", error=str(exc))
                    raise StoreUnavailableError(f"Failed to reach object store: {exc}") from exc

                page = response.json()
                for item in page:
                    # Folder placeholders come back without an id
                    if item.get("id") is None:
                        continue
                    name = item["name"]
                    objects.append(
                        StoredObject(
                            key=f"{prefix.rstrip('/')}/{name}" if prefix else name,
                            size=int((item.get("metadata") or {}).get("size") or 0),
                            created_at=_parse_timestamp(item.get("created_at")),
                        )
                    )
                if len(page) < LIST_PAGE_SIZE:
                    break
                offset += LIST_PAGE_SIZE

        return objects
