"""
Error kinds raised across the listing/blob lifecycle.

Leaf services raise these; the orchestrating use cases turn them into typed
per-item outcomes instead of letting them escape a batch.
"""
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.application.use_cases.create_listing_batch import BatchResult


class LifecycleError(Exception):
    """Base class for all storefront lifecycle failures."""


class ValidationError(LifecycleError):
    """Malformed input, detected before any I/O."""


class NotResolvableError(LifecycleError):
    """A public reference cannot be mapped to a storage key."""

    def __init__(self, reference: str, reason: str = "no storage key found") -> None:
        self.reference = reference
        super().__init__(f"Cannot resolve storage key from {reference!r}: {reason}")


class StoreUnavailableError(LifecycleError):
    """The object store rejected or failed a request."""


class StorageNotConfiguredError(StoreUnavailableError):
    """The object store has no URL or service credentials configured."""


class WriteConflictError(StoreUnavailableError):
    """An object already exists at the requested key."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Object {key!r} already exists in storage.")


class RelationalFailureError(LifecycleError):
    """A row insert/update/delete/select failed."""


class BatchFailedError(LifecycleError):
    """Every item of a non-empty batch failed."""

    def __init__(self, result: "BatchResult") -> None:
        self.result = result
        super().__init__(f"All {result.failed} item(s) of the batch failed.")
