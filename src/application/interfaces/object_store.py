from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass
class StoredObject:
    key: str
    size: int
    created_at: datetime | None = None


class ObjectStore(ABC):
    """Port for the blob store holding listing images."""

    @abstractmethod
    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        """Create ``key``; raises WriteConflictError if it already exists."""
        ...

    @abstractmethod
    async def remove(self, keys: list[str]) -> list[str]:
        """Delete ``keys`` and return the subset that actually existed."""
        ...

    @abstractmethod
    def get_public_url(self, key: str) -> str:
        ...

    @abstractmethod
    async def list_objects(self, prefix: str = "") -> list[StoredObject]:
        ...
