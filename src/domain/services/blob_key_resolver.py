import re
from urllib.parse import quote, unquote, urlsplit

from src.domain.errors.lifecycle_errors import NotResolvableError

IMAGE_EXTENSION_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)


class BlobKeyResolver:
    """
    Maps public object URLs to storage keys and back.

    Supabase Storage URLs look like
    ``https://<ref>.supabase.co/storage/v1/object/public/<bucket>/<key>``
    (or ``/object/sign/<bucket>/<key>?token=...``). The key is everything after
    the bucket segment, URL-decoded. As a fallback a trailing image filename is
    taken as the key. Anything else is rejected rather than guessed: a wrong
    key either leaves the real blob orphaned or removes an unrelated one.
    """

    def __init__(self, bucket: str, base_url: str = "") -> None:
        self._bucket = bucket
        self._base_url = base_url.rstrip("/")

    @property
    def bucket(self) -> str:
        return self._bucket

    def resolve(self, public_reference: str) -> str:
        if not public_reference or not isinstance(public_reference, str):
            raise NotResolvableError(str(public_reference), "empty reference")

        try:
            parts = urlsplit(public_reference.strip())
        except ValueError as exc:
            raise NotResolvableError(public_reference, f"malformed URL ({exc})") from exc
        if not parts.scheme or not parts.netloc:
            raise NotResolvableError(public_reference, "not an absolute URL")

        segments = [segment for segment in parts.path.split("/") if segment]

        if self._bucket in segments:
            index = segments.index(self._bucket)
            if index < len(segments) - 1:
                return unquote("/".join(segments[index + 1 :]))

        if segments and IMAGE_EXTENSION_PATTERN.search(segments[-1]):
            return unquote(segments[-1])

        raise NotResolvableError(public_reference)

    def public_url(self, key: str) -> str:
        """Public URL for ``key``; the inverse of resolve()."""
        return (
            f"{self._base_url}/storage/v1/object/public/"
            f"{self._bucket}/{quote(key, safe='/')}"
        )
