"""
Image helpers for thumbnail previews and upload re-encoding.
Pillow decodes selected files locally so staff can see what they picked
before anything is sent to the backend.
"""
import base64
import io
import logging
from typing import Optional, Tuple
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_WEBP_QUALITY = 85  # Balance between quality and file size (0-100)
DEFAULT_WEBP_METHOD = 6    # Compression method (0-6, higher = better compression but slower)
DEFAULT_PREVIEW_DIMENSION = 480


def is_image_content_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.startswith("image/")


def _open(image_bytes: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(image_bytes))
    image.load()
    return image


def build_preview_data_url(
    image_bytes: bytes,
    max_dimension: int = DEFAULT_PREVIEW_DIMENSION
) -> Optional[str]:
    """
    Decode an image and return a downscaled copy as a data URL.

    Args:
        image_bytes: Selected file bytes
        max_dimension: Longest side of the preview in pixels

    Returns:
        str: `data:image/...;base64,...` URL, or None if the bytes are not an image
    """
    try:
        image = _open(image_bytes)
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Cannot build preview, unreadable image: {str(e)}")
        return None

    original_size = image.size
    image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

    # PNG keeps transparency, everything else previews as JPEG
    if image.mode in ("RGBA", "LA", "P"):
        preview_format, mime_type = "PNG", "image/png"
        if image.mode == "P":
            image = image.convert("RGBA")
    else:
        preview_format, mime_type = "JPEG", "image/jpeg"
        if image.mode != "RGB":
            image = image.convert("RGB")

    buffer = io.BytesIO()
    image.save(buffer, format=preview_format)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")

    logger.debug(f"Built {preview_format} preview {original_size} -> {image.size}")
    return f"data:{mime_type};base64,{encoded}"


async def convert_to_webp(
    image_bytes: bytes,
    quality: int = DEFAULT_WEBP_QUALITY,
    method: int = DEFAULT_WEBP_METHOD
) -> Tuple[bytes, bool]:
    """
    Re-encode an image as WebP before it is forwarded to the backend.

    Args:
        image_bytes: Original image file bytes
        quality: WebP quality (0-100, default: 85)
        method: WebP compression method (0-6, default: 6)

    Returns:
        Tuple[bytes, bool]:
            - WebP bytes, or the original bytes when skipped or failed
            - True if the bytes are WebP (converted or already), False on failure
    """
    try:
        image = _open(image_bytes)

        if image.format == "WEBP":
            return image_bytes, True

        # WebP keeps alpha, so transparent modes become RGBA
        if image.mode in ("P", "LA"):
            image = image.convert("RGBA")
        elif image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGB")

        buffer = io.BytesIO()
        image.save(buffer, format="WEBP", quality=quality, method=method)
        webp_bytes = buffer.getvalue()

        logger.info(
            f"Converted image to WebP: {len(image_bytes):,} bytes -> {len(webp_bytes):,} bytes "
            f"(quality={quality})"
        )
        return webp_bytes, True

    except UnidentifiedImageError as e:
        logger.warning(f"Cannot identify image format: {str(e)}")
        return image_bytes, False

    except Exception as e:
        logger.error(f"Error converting image to WebP: {str(e)}", exc_info=True)
        return image_bytes, False


def webp_filename(filename: str) -> str:
    """Swap the extension of an uploaded filename for `.webp`."""
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    return f"{stem or 'image'}.webp"
