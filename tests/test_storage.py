from dataclasses import replace

import boto3
import pytest
from moto import mock_aws

from app.config import get_settings
from app.storage import PUBLIC_ID_PREFIX, discard_attachment, local_storage_path, store_attachment
from app.storage_s3 import S3Storage, StorageError, guess_extension


@pytest.fixture
def s3_settings(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    return replace(
        get_settings(),
        storage_provider="s3",
        s3_bucket="test-grievance-bucket",
        s3_region="us-east-1",
        s3_endpoint=None,
        s3_access_key_id="testing",
        s3_secret_access_key="testing",
    )


def test_guess_extension():
    assert guess_extension("image/png", "photo.PNG") == "png"
    assert guess_extension("image/png", None) == "png"
    assert guess_extension(None, None) == "jpg"


def test_store_attachment_locally(png_bytes):
    stored = store_attachment(png_bytes, "room.png", "image/png")

    assert stored.public_id.startswith(f"{PUBLIC_ID_PREFIX}/")
    assert stored.url == f"/storage/{stored.public_id}.png"
    assert (local_storage_path() / f"{stored.public_id}.png").read_bytes() == png_bytes


@mock_aws
def test_store_attachment_in_s3(s3_settings, png_bytes):
    s3 = S3Storage(s3_settings)
    s3.ensure_bucket()

    stored = store_attachment(png_bytes, "room.png", "image/png", s3=s3)

    key = f"{stored.public_id}.png"
    assert stored.url == f"https://test-grievance-bucket.s3.us-east-1.amazonaws.com/{key}"
    assert stored.key == key and stored.in_s3
    client = boto3.client("s3", region_name="us-east-1")
    head = client.head_object(Bucket="test-grievance-bucket", Key=key)
    assert head["ContentType"] == "image/png"
    assert head["Metadata"]["managed-by"] == "grievance-backend"

    body = client.get_object(Bucket="test-grievance-bucket", Key=key)["Body"].read()
    assert body == png_bytes


@mock_aws
def test_cloudfront_url(s3_settings):
    s3 = S3Storage(replace(s3_settings, cloudfront_domain="cdn.example.com"))
    assert s3.object_url("grievances/abc.png") == "https://cdn.example.com/grievances/abc.png"


@mock_aws
def test_s3_failure_falls_back_to_local_disk(s3_settings, png_bytes):
    # Bucket never created, so the upload fails.
    s3 = S3Storage(s3_settings)

    stored = store_attachment(png_bytes, "room.png", "image/png", s3=s3)

    assert stored.url.startswith("/storage/")
    assert (local_storage_path() / f"{stored.public_id}.png").exists()



@mock_aws
def test_object_url_uses_custom_endpoint(s3_settings):
    s3 = S3Storage(replace(s3_settings, s3_endpoint="http://minio.local:9000/"))
    assert s3.object_url("grievances/abc.png") == "http://minio.local:9000/test-grievance-bucket/grievances/abc.png"


def test_discard_local_attachment(png_bytes):
    stored = store_attachment(png_bytes, "room.png", "image/png")
    path = local_storage_path() / stored.key

    assert discard_attachment(stored) is True
    assert not path.exists()
    assert discard_attachment(stored) is False


@mock_aws
def test_discard_s3_attachment(s3_settings, png_bytes):
    s3 = S3Storage(s3_settings)
    s3.ensure_bucket()
    stored = store_attachment(png_bytes, "room.png", "image/png", s3=s3)

    assert discard_attachment(stored, s3=s3) is True

    listing = boto3.client("s3", region_name="us-east-1").list_objects_v2(Bucket="test-grievance-bucket")
    assert listing.get("KeyCount", 0) == 0


@mock_aws
def test_delete_object_on_missing_bucket_raises(s3_settings):
    s3 = S3Storage(s3_settings)
    with pytest.raises(StorageError):
        s3.delete_object("grievances/missing.png")
