from abc import ABC, abstractmethod


class ImageTranscoder(ABC):
    """Port for the single resize + re-encode step applied to uploads."""

    @abstractmethod
    async def transcode(
        self, data: bytes, *, max_width: int, max_height: int, quality: int
    ) -> bytes:
        """Fit inside max_width x max_height (never upscaling) and re-encode as JPEG."""
        ...
