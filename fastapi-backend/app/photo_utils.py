"""
Validation for uploaded grievance photos.

Uses Pillow (PIL) to make sure the bytes really decode as an image.
"""

from PIL import Image, UnidentifiedImageError
import io
from typing import Tuple, Optional
import logging

logger = logging.getLogger("app.photo_utils")

MAX_IMAGE_DIMENSION = 8000  # pixels
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

MIME_BY_EXTENSION = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


class UploadTooLarge(ValueError):
    pass


def validate_image(file_data: bytes, file_name: str, max_bytes: int) -> Tuple[bool, Optional[str]]:
    """
    Validate an uploaded image.

    Returns:
        Tuple of (is_valid, error_message)

    Raises:
        UploadTooLarge: when the payload exceeds ``max_bytes``.
    """
    if len(file_data) > max_bytes:
        raise UploadTooLarge(f"File size exceeds {max_bytes / (1024 * 1024):.1f} MB limit")

    if not file_data:
        return False, "Uploaded file is empty"

    ext = "." + file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    if ext not in ALLOWED_EXTENSIONS:
        return False, f"File type not allowed. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"

    try:
        img = Image.open(io.BytesIO(file_data))
        img.verify()

        # verify() leaves the image unusable; reopen to read the size.
        img = Image.open(io.BytesIO(file_data))
        width, height = img.size
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.warning(f"Image validation failed for {file_name}: {e}")
        return False, f"Invalid image file: {str(e)}"

    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        return False, f"Image dimensions exceed {MAX_IMAGE_DIMENSION}px"

    return True, None


def get_mime_type(file_name: str) -> str:
    """Get MIME type from file extension."""
    ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    return MIME_BY_EXTENSION.get(ext, "application/octet-stream")
