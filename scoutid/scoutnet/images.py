"""Profile image processing.

Images end up base64-encoded in a user attribute and in ID tokens, so they are
scaled to fit a small square and re-encoded as JPEG.
"""
from __future__ import annotations
import logging
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

TARGET_IMAGE_SIZE = 128
JPEG_QUALITY = 85


def process_image(image_bytes: Optional[bytes], size: int = TARGET_IMAGE_SIZE) -> Optional[bytes]:
    """Resize to fit ``size``x``size`` keeping the aspect ratio, return JPEG bytes.

    Returns None for empty, undecodable or oversized input.
    """
    if not image_bytes:
        return None

    try:
        img = Image.open(BytesIO(image_bytes))
        img.load()

        width, height = img.size
        if width > height:
            new_size = (size, max(1, int(height / width * size)))
        else:
            new_size = (max(1, int(width / height * size)), size)

        resized = img.convert("RGB").resize(new_size, Image.Resampling.LANCZOS)
        buf = BytesIO()
        resized.save(buf, format="JPEG", quality=JPEG_QUALITY)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.error(f"Error processing profile image: {e}")
        return None
    return buf.getvalue()
