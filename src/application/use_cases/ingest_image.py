import re
import secrets
import string
import time
import unicodedata
from dataclasses import dataclass

import structlog

from src.application.interfaces.image_transcoder import ImageTranscoder
from src.application.interfaces.object_store import ObjectStore
from src.domain.errors.lifecycle_errors import NotResolvableError, ValidationError
from src.domain.services.blob_key_resolver import BlobKeyResolver

logger = structlog.get_logger(__name__)

MAX_DIMENSION = 1920
JPEG_QUALITY = 85
STORED_CONTENT_TYPE = "image/jpeg"
DEFAULT_ORIGINAL_NAME = "image.jpg"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.\-_]")
_EXTENSION = re.compile(r"\.[^/.]+$")
_BASE36 = string.digits + string.ascii_lowercase


def sanitize_filename(original_name: str | None) -> str:
    """Strip diacritics and replace anything outside ``[a-zA-Z0-9.-_]`` with ``_``."""
    decomposed = unicodedata.normalize("NFD", original_name or DEFAULT_ORIGINAL_NAME)
    without_marks = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _UNSAFE_CHARS.sub("_", without_marks)


def generate_stored_name(original_name: str | None) -> str:
    """``<epoch millis>-<random base36>-<sanitized base>.jpg``; always .jpg after re-encoding."""
    base = _EXTENSION.sub("", sanitize_filename(original_name))
    token = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{time.time_ns() // 1_000_000}-{token}-{base}.jpg"


@dataclass
class IngestedImage:
    public_url: str
    stored_name: str


class IngestImage:
    """
    Use case: Store one uploaded image and return its durable public URL.

    The image is resized/re-encoded first; if that fails the original bytes
    are stored instead. Exactly one object is written per successful call.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        transcoder: ImageTranscoder,
        resolver: BlobKeyResolver,
    ) -> None:
        self._object_store = object_store
        self._transcoder = transcoder
        self._resolver = resolver

    async def execute(self, raw_bytes: bytes, original_name: str | None) -> IngestedImage:
        if not raw_bytes:
            raise ValidationError("Uploaded file is empty.")

        stored_name = generate_stored_name(original_name)
        public_url = self._object_store.get_public_url(stored_name)

        # Refuse to write anything the delete path could not find again
        try:
            resolved = self._resolver.resolve(public_url)
        except NotResolvableError:
            logger.error("stored_name_not_resolvable", stored_name=stored_name, url=public_url)
            raise
        if resolved != stored_name:
            logger.error(
                "stored_name_resolution_mismatch",
                stored_name=stored_name,
                resolved=resolved,
            )
            raise NotResolvableError(public_url, f"resolves to {resolved!r}, not {stored_name!r}")

        data = await self._transcode(raw_bytes, stored_name)

        await self._object_store.upload(stored_name, data, STORED_CONTENT_TYPE)

        logger.info(
            "image_ingested",
            stored_name=stored_name,
            original_name=original_name,
            original_size=len(raw_bytes),
            stored_size=len(data),
        )
        return IngestedImage(public_url=public_url, stored_name=stored_name)

    async def _transcode(self, raw_bytes: bytes, stored_name: str) -> bytes:
        try:
            processed = await self._transcoder.transcode(
                raw_bytes,
                max_width=MAX_DIMENSION,
                max_height=MAX_DIMENSION,
                quality=JPEG_QUALITY,
            )
        except Exception as exc:
            logger.warning(
                "image_transcode_failed_using_original",
                stored_name=stored_name,
                error=str(exc),
            )
            return raw_bytes

        logger.debug(
            "image_transcoded",
            stored_name=stored_name,
            original_size=len(raw_bytes),
            processed_size=len(processed),
        )
        return processed
