"""
Centralized settings for the grievance backend.

Provides a lightweight wrapper around environment variables (with `.env`
support for local development) so the rest of the codebase can import a single
`get_settings()` helper when configuration is needed. Explicit environment
variables always win over the `.env` file; tests rely on this to point the app
at a throw-away SQLite database.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional
import os

from dotenv import dotenv_values


@dataclass(frozen=True)
class Settings:
    """Immutable view of application configuration."""

    # General
    environment: str
    allowed_hosts: tuple[str, ...]
    auto_admin_emails: frozenset[str]
    seed_departments: bool

    # Database (alembic reads DATABASE_URL too)
    database_url: str

    # Auth
    jwt_secret: Optional[str]
    jwt_access_minutes: int

    # Attachment storage
    storage_provider: str
    local_storage_dir: str
    max_upload_bytes: int
    s3_bucket: str
    s3_region: str
    s3_endpoint: Optional[str]
    s3_use_ssl: bool
    s3_access_key_id: Optional[str]
    s3_secret_access_key: Optional[str]
    kms_key_id: Optional[str]
    cloudfront_domain: Optional[str]

    # SMS notifications (Twilio REST API)
    twilio_account_sid: Optional[str]
    twilio_auth_token: Optional[str]
    twilio_from_number: Optional[str]
    sms_api_base: str
    sms_country_code: str
    sms_timeout_seconds: float

    # Observability
    sentry_dsn: Optional[str]
    metrics_namespace: str


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_list(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_lookup(key: str, env: dict[str, str], default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key) or env.get(key) or default


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""

    env_path = Path(__file__).resolve().parents[2] / ".env"
    env_file = dotenv_values(str(env_path)) if env_path.exists() else {}

    default_storage_dir = Path(__file__).resolve().parents[1] / "storage"

    return Settings(
        environment=_env_lookup("APP_ENV", env_file, "development"),
        allowed_hosts=tuple(_as_list(_env_lookup("ALLOWED_HOSTS", env_file, "*"))),
        auto_admin_emails=frozenset(
            addr.lower() for addr in _as_list(_env_lookup("AUTO_ADMIN_EMAILS", env_file))
        ),
        seed_departments=_as_bool(_env_lookup("SEED_DEPARTMENTS", env_file), True),
        database_url=_env_lookup("DATABASE_URL", env_file, "sqlite+aiosqlite:///./grievances.db"),
        jwt_secret=_env_lookup("JWT_SECRET", env_file),
        jwt_access_minutes=int(_env_lookup("JWT_ACCESS_MINUTES", env_file, "60")),
        storage_provider=_env_lookup("STORAGE_PROVIDER", env_file, "local").lower(),
        local_storage_dir=_env_lookup("LOCAL_STORAGE_DIR", env_file, str(default_storage_dir)),
        max_upload_bytes=int(_env_lookup("MAX_UPLOAD_BYTES", env_file, str(10 * 1024 * 1024))),
        s3_bucket=_env_lookup("S3_BUCKET", env_file, "grievance-attachments"),
        s3_region=_env_lookup("S3_REGION", env_file, "us-east-1"),
        s3_endpoint=_env_lookup("S3_ENDPOINT", env_file) or _env_lookup("S3_ENDPOINT_URL", env_file),
        s3_use_ssl=_as_bool(_env_lookup("S3_USE_SSL", env_file), True),
        s3_access_key_id=_env_lookup("S3_ACCESS_KEY_ID", env_file) or _env_lookup("S3_ACCESS_KEY", env_file),
        s3_secret_access_key=_env_lookup("S3_SECRET_ACCESS_KEY", env_file) or _env_lookup("S3_SECRET_KEY", env_file),
        kms_key_id=_env_lookup("KMS_KEY_ID", env_file),
        cloudfront_domain=_env_lookup("CLOUDFRONT_DOMAIN", env_file),
        twilio_account_sid=_env_lookup("TWILIO_ACCOUNT_SID", env_file),
        twilio_auth_token=_env_lookup("TWILIO_AUTH_TOKEN", env_file),
        twilio_from_number=_env_lookup("TWILIO_FROM_NUMBER", env_file),
        sms_api_base=_env_lookup("SMS_API_BASE", env_file, "https://api.twilio.com").rstrip("/"),
        sms_country_code=_env_lookup("SMS_COUNTRY_CODE", env_file, "+91"),
        sms_timeout_seconds=float(_env_lookup("SMS_TIMEOUT_SECONDS", env_file, "10")),
        sentry_dsn=_env_lookup("SENTRY_DSN", env_file),
        metrics_namespace=_env_lookup("METRICS_NAMESPACE", env_file, "grievances"),
    )


__all__ = ["Settings", "get_settings"]
