"""
Attachment storage.

Uploaded files are written to S3 when `STORAGE_PROVIDER=s3` and to the local
storage directory otherwise. An S3 failure falls back to local disk so a
grievance submission never fails only because object storage is down.

The caller gets back a `StoredFile`: the URL recorded on the grievance plus
the generated public id (the storage reference).
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional
import logging
import uuid

from .config import get_settings
from .storage_s3 import S3Storage, StorageError, guess_extension

logger = logging.getLogger("app.storage")

PUBLIC_ID_PREFIX = "grievances"


@dataclass(frozen=True)
class StoredFile:
    url: str
    public_id: str
    # Object key in the bucket, or the path under the local storage dir.
    key: str = ""
    in_s3: bool = False


def local_storage_path() -> Path:
    path = Path(get_settings().local_storage_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


@lru_cache()
def get_s3_storage() -> Optional[S3Storage]:
    settings = get_settings()
    if settings.storage_provider != "s3":
        return None
    try:
        s3 = S3Storage(settings)
        s3.ensure_bucket()
    except Exception as exc:
        logger.error(
            "Failed to initialize S3 storage, falling back to local filesystem: %s", exc
        )
        return None
    logger.info("Attachment storage initialized (provider=s3, bucket=%s)", s3.bucket)
    return s3


def new_public_id() -> str:
    return f"{PUBLIC_ID_PREFIX}/{uuid.uuid4().hex}"


def _store_locally(data: bytes, public_id: str, extension: str) -> StoredFile:
    relative = f"{public_id}.{extension}"
    target = local_storage_path() / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    logger.info("Stored attachment locally: %s", target)
    return StoredFile(url=f"/storage/{relative}", public_id=public_id, key=relative)


def store_attachment(
    data: bytes,
    filename: Optional[str],
    content_type: Optional[str] = None,
    s3: Optional[S3Storage] = None,
) -> StoredFile:
    """Persist one uploaded file and return its URL and generated public id."""
    public_id = new_public_id()
    extension = guess_extension(content_type, filename)
    s3 = s3 if s3 is not None else get_s3_storage()

    if s3 is not None:
        key = S3Storage.build_key(public_id, extension)
        try:
            s3.put_object(key, data, content_type)
            return StoredFile(url=s3.object_url(key), public_id=public_id, key=key, in_s3=True)
        except StorageError as exc:
            logger.error(
                "Failed to upload attachment to S3, falling back to local storage: %s", exc
            )

    return _store_locally(data, public_id, extension)


def discard_attachment(stored: StoredFile, s3: Optional[S3Storage] = None) -> bool:
    """Remove a stored file that never got recorded on a grievance."""
    if stored.in_s3:
        s3 = s3 if s3 is not None else get_s3_storage()
        if s3 is None:
            logger.error("Cannot discard %s: S3 storage is unavailable", stored.key)
            return False
        try:
            s3.delete_object(stored.key)
        except StorageError as exc:
            logger.error("Failed to discard attachment from S3: %s", exc)
            return False
        logger.info("Discarded unrecorded attachment %s", stored.public_id)
        return True

    target = local_storage_path() / stored.key
    if not stored.key or not target.is_file():
        return False
    target.unlink()
    logger.info("Discarded unrecorded attachment %s", stored.public_id)
    return True


__all__ = [
    "StoredFile",
    "discard_attachment",
    "get_s3_storage",
    "local_storage_path",
    "store_attachment",
]
