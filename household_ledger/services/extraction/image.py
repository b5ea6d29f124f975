"""
Receipt Photo Preparation

Phone photos go to the extraction model as JPEG, scaled down so the
longest side fits the configured limit. Anything Pillow cannot open is
rejected here, before a model call is spent on it.
"""

from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from household_ledger.config import AppSettings, get_settings


class ImageRejectedError(Exception):
    """The uploaded file cannot be used as a receipt photo."""
    pass


def prepare_image(
    image_bytes: bytes,
    settings: Optional[AppSettings] = None,
) -> tuple[bytes, str]:
    """
    Validate and normalize a photo.

    Returns:
        (jpeg_bytes, mime_type)

    Raises:
        ImageRejectedError: Empty, too big, unreadable or unsupported format
    """
    settings = settings or get_settings().app

    if not image_bytes:
        raise ImageRejectedError("The photo is empty")
    if len(image_bytes) > settings.max_upload_size_bytes:
        raise ImageRejectedError(
            f"The photo is larger than {settings.max_upload_size_mb} MB"
        )

    try:
        img = Image.open(BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageRejectedError(f"Could not read the photo: {e}") from e

    fmt = (img.format or "").lower()
    if fmt not in settings.supported_formats_list:
        raise ImageRejectedError(
            f"Unsupported image format {fmt or 'unknown'!r}; "
            f"use one of {', '.join(settings.supported_formats_list)}"
        )

    if img.mode != "RGB":
        img = img.convert("RGB")

    # thumbnail() keeps aspect ratio and never upscales
    limit = settings.max_image_side_px
    img.thumbnail((limit, limit))

    out = BytesIO()
    img.save(out, format="JPEG", quality=90)
    return out.getvalue(), "image/jpeg"
