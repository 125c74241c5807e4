from dataclasses import dataclass

import structlog

from src.application.interfaces.object_store import ObjectStore
from src.domain.services.blob_key_resolver import BlobKeyResolver

logger = structlog.get_logger(__name__)


@dataclass
class DeletedBlob:
    public_url: str
    key: str
    existed: bool


class DeleteBlob:
    """
    Use case: Remove the object behind a public URL from the blob store.

    Raises NotResolvableError when no key can be derived and
    StoreUnavailableError when the store rejects the request. Removing a key
    that is already gone succeeds with ``existed=False`` so retries are safe.
    """

    def __init__(self, object_store: ObjectStore, resolver: BlobKeyResolver) -> None:
        self._object_store = object_store
        self._resolver = resolver

    async def execute(self, public_url: str) -> DeletedBlob:
        key = self._resolver.resolve(public_url)

        removed = await self._object_store.remove([key])
        existed = key in removed
        if existed:
            logger.info("blob_deleted", key=key)
        else:
            logger.warning("blob_already_absent", key=key, url=public_url)

        return DeletedBlob(public_url=public_url, key=key, existed=existed)
