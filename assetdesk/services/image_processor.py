"""Image normalisation before upload.

Images are re-encoded as WEBP and a fixed-width thumbnail is derived.
Videos and documents never pass through here.
"""

import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from .exceptions import ImageProcessingError

logger = logging.getLogger(__name__)

OUTPUT_MIME_TYPE = "image/webp"
OUTPUT_EXTENSION = ".webp"


@dataclass(slots=True)
class ProcessedImage:
    buffer: bytes
    mime_type: str
    width: int
    height: int
    original_mime_type: str | None
    compressed: bool
    thumbnail_buffer: bytes | None = None


def _prepare_mode(img: Image.Image) -> Image.Image:
    if img.mode == "P":
        return img.convert("RGBA")
    if img.mode not in ("RGB", "RGBA"):
        return img.convert("RGBA" if "A" in img.getbands() else "RGB")
    return img


def _encode_webp(img: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="WEBP", quality=quality, method=4)
    return buf.getvalue()


def process_image(
    data: bytes,
    mime_type: str,
    quality: int = 80,
    thumbnail_width: int = 200,
    thumbnail_quality: int = 75,
) -> ProcessedImage:
    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            img = _prepare_mode(ImageOps.exif_transpose(source))
            width, height = img.size
            buffer = _encode_webp(img, quality)

            thumb = img.copy()
            if width > thumbnail_width:
                thumb_height = max(1, round(height * thumbnail_width / width))
                thumb = thumb.resize((thumbnail_width, thumb_height), Image.LANCZOS)
            thumbnail_buffer = _encode_webp(thumb, thumbnail_quality)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageProcessingError(f"Image processing failed: {exc}") from exc

    logger.debug("Processed %s %dx%d: %d -> %d bytes", mime_type, width, height, len(data), len(buffer))
    return ProcessedImage(
        buffer=buffer,
        mime_type=OUTPUT_MIME_TYPE,
        width=width,
        height=height,
        original_mime_type=mime_type if mime_type != OUTPUT_MIME_TYPE else None,
        compressed=True,
        thumbnail_buffer=thumbnail_buffer,
    )


class ImageProcessor:
    def __init__(self, quality: int = 80, thumbnail_width: int = 200, thumbnail_quality: int = 75):
        self.quality = quality
        self.thumbnail_width = thumbnail_width
        self.thumbnail_quality = thumbnail_quality

    def process(self, data: bytes, mime_type: str) -> ProcessedImage:
        return process_image(
            data,
            mime_type,
            quality=self.quality,
            thumbnail_width=self.thumbnail_width,
            thumbnail_quality=self.thumbnail_quality,
        )
