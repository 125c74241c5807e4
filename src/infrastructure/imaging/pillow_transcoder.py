"""
Pillow-backed image transcoder.

Pillow decoding/encoding is CPU-bound and blocking, so it runs in the
default thread-pool executor to keep the event loop free for the other
uploads of a batch.
"""
import asyncio
import io
from functools import partial

from PIL import Image, ImageOps

from src.application.interfaces.image_transcoder import ImageTranscoder


def _blocking_transcode(data: bytes, max_width: int, max_height: int, quality: int) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        img = ImageOps.exif_transpose(img)
        # thumbnail() keeps the aspect ratio and never enlarges
        img.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)
        if img.mode != "RGB":
            img = img.convert("RGB")

        output = io.BytesIO()
        img.save(output, format="JPEG", quality=quality, optimize=True, progressive=True)
        return output.getvalue()


class PillowImageTranscoder(ImageTranscoder):
    async def transcode(
        self, data: bytes, *, max_width: int, max_height: int, quality: int
    ) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, partial(_blocking_transcode, data, max_width, max_height, quality)
        )
