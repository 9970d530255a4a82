"""Common FastAPI dependencies."""

from typing import Optional
import logging

from fastapi import File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool

from .config import get_settings
from .photo_utils import UploadTooLarge, get_mime_type, validate_image
from .storage import StoredFile, store_attachment
from .metrics import UPLOAD_ATTEMPTS, UPLOAD_FAILURES, UPLOAD_SUCCESSES

logger = logging.getLogger("app.dependencies")


async def optional_photo_upload(
    photo: Optional[UploadFile] = File(None),
) -> Optional[StoredFile]:
    """
    Validate and store the single optional file sent as form field ``photo``.

    Runs before the route handler; the handler only records the returned
    reference. Rejected files answer 400 (413 when too large).
    """
    if photo is None or not photo.filename:
        return None

    UPLOAD_ATTEMPTS.inc()
    data = await photo.read()

    try:
        is_valid, error_msg = validate_image(data, photo.filename, get_settings().max_upload_bytes)
    except UploadTooLarge as exc:
        UPLOAD_FAILURES.inc()
        raise HTTPException(status_code=413, detail=str(exc))
    if not is_valid:
        UPLOAD_FAILURES.inc()
        raise HTTPException(status_code=400, detail=error_msg)

    content_type = photo.content_type or get_mime_type(photo.filename)
    try:
        # Disk and S3 writes block; keep them off the event loop.
        stored = await run_in_threadpool(store_attachment, data, photo.filename, content_type)
    except Exception as exc:
        UPLOAD_FAILURES.inc()
        logger.error(f"Failed to store attachment {photo.filename}: {exc}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to store attachment: {exc}")

    UPLOAD_SUCCESSES.inc()
    return stored


__all__ = ["optional_photo_upload"]
