"""
Product image processing.

Every product picture is cover-cropped to TARGET_SIZE and stored as JPEG.
Quality is stepped down until the file fits MAX_FILE_SIZE or quality
reaches the floor; an image that still does not fit is kept and logged.
"""

import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from storeman.exceptions import ShopError

logger = logging.getLogger(__name__)

TARGET_SIZE = (300, 500)
MAX_FILE_SIZE = 50 * 1024
INITIAL_QUALITY = 90
BACKGROUND = (255, 255, 255)


def _flatten(image: Image.Image) -> Image.Image:
    """Convert to RGB, compositing any transparency onto white."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, BACKGROUND)
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def _encode(image: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def process_image(raw: bytes) -> bytes:
    """
    Resize and compress an uploaded image.

    Args:
        raw: Image file bytes in any format Pillow can read

    Returns:
        JPEG bytes, exactly TARGET_SIZE pixels

    Raises:
        ShopError: INVALID_IMAGE if the bytes are empty or cannot be decoded
            (Pillow's decompression-bomb pixel limit included)
    """
    if not raw:
        raise ShopError("INVALID_IMAGE", "No image data provided")

    logger.info("Processing image: input size %d bytes", len(raw))
    try:
        with Image.open(io.BytesIO(raw)) as source:
            source.load()
            flat = _flatten(source)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ShopError("INVALID_IMAGE", f"Failed to process image: {exc}") from exc

    fitted = ImageOps.fit(flat, TARGET_SIZE, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))
    processed = _encode(fitted, INITIAL_QUALITY)

    quality = 85
    while len(processed) > MAX_FILE_SIZE and quality > 10:
        logger.debug("Reducing quality to %d%%", quality)
        processed = _encode(fitted, quality)
        quality -= 10

    if len(processed) > MAX_FILE_SIZE:
        logger.warning(
            "Could not compress image below %d bytes. Final size: %d bytes",
            MAX_FILE_SIZE,
            len(processed),
        )
    else:
        logger.info("Final processed size: %d bytes", len(processed))
    return processed
