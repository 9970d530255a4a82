"""
Helpers for storing grievance attachments in AWS S3 (or compatible services
like MinIO).

Objects are written with explicit content types and, when a KMS key is
configured, server-side encryption.
"""

from __future__ import annotations

from typing import Optional, Dict, Any
import logging
import mimetypes

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError

from .config import Settings, get_settings

logger = logging.getLogger("app.storage_s3")


class StorageError(RuntimeError):
    """Raised when storage operations fail."""


class S3Storage:
    """Wrapper over boto3 with sane defaults for attachment objects."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        session_kwargs = {}

        if settings.s3_access_key_id and settings.s3_secret_access_key:
            session_kwargs.update(
                aws_access_key_id=settings.s3_access_key_id,
                aws_secret_access_key=settings.s3_secret_access_key,
            )

        session = (
            boto3.session.Session(**session_kwargs)
            if session_kwargs
            else boto3.session.Session()
        )

        client_kwargs = {
            "service_name": "s3",
            "region_name": settings.s3_region,
            "config": Config(signature_version="s3v4"),
        }
        if settings.s3_endpoint:
            client_kwargs["endpoint_url"] = settings.s3_endpoint
        if settings.s3_use_ssl is False:
            client_kwargs["use_ssl"] = False

        self._client = session.client(**client_kwargs)
        self._bucket = settings.s3_bucket
        self._region = settings.s3_region
        self._endpoint = settings.s3_endpoint
        self._kms_key_id = settings.kms_key_id
        self._cloudfront_domain = settings.cloudfront_domain

    @property
    def bucket(self) -> str:
        return self._bucket

    @staticmethod
    def build_key(public_id: str, extension: str) -> str:
        return f"{public_id}.{extension}"

    def _apply_object_defaults(
        self, extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if self._kms_key_id:
            params["ServerSideEncryption"] = "aws:kms"
            params["SSEKMSKeyId"] = self._kms_key_id
        if extra:
            params.update(extra)
        return params

    def object_url(self, key: str) -> str:
        if self._cloudfront_domain:
            return f"https://{self._cloudfront_domain}/{key}"
        if self._endpoint:
            return f"{self._endpoint.rstrip('/')}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    def put_object(
        self, key: str, data: bytes, content_type: Optional[str] = None
    ) -> None:
        extra = {"Metadata": {"managed-by": "grievance-backend"}}
        if content_type:
            extra["ContentType"] = content_type
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                **self._apply_object_defaults(extra),
            )
        except ClientError as exc:
            raise StorageError(f"put_object failed for {key}: {exc}") from exc

    def delete_object(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            raise StorageError(f"delete_object failed for {key}: {exc}") from exc

    def ensure_bucket(self) -> None:
        """Best-effort check that bucket exists (useful for local MinIO)."""
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code")
            if error_code in {"404", "NoSuchBucket"}:
                logger.info(
                    "Bucket %s missing; attempting to create for dev/local use",
                    self._bucket,
                )
                params = {"Bucket": self._bucket}
                if self._region and self._region != "us-east-1":
                    params["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
                self._client.create_bucket(**params)
            else:
                raise StorageError(f"Bucket {self._bucket} is not reachable: {exc}") from exc


def guess_extension(content_type: Optional[str], filename: Optional[str] = None) -> str:
    if filename and "." in filename:
        return filename.rsplit(".", 1)[-1].lower()
    mapped = mimetypes.guess_extension(content_type or "") or ".jpg"
    return mapped.lstrip(".")


__all__ = ["S3Storage", "StorageError", "guess_extension"]
