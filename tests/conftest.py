import io
import os
import sys
import tempfile
from pathlib import Path
from typing import Callable, Optional, Tuple

import pytest
from PIL import Image
from sqlmodel import Session, SQLModel, create_engine

# Ensure we can import the backend package located under fastapi-backend/
REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_PATH = REPO_ROOT / "fastapi-backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

# Set environment variables BEFORE importing app modules; settings are cached.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="grievance-tests-"))
_DB_PATH = _TMP_DIR / "test.db"
os.environ["JWT_SECRET"] = "test-secret-key-for-pytest-only-12345"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ["LOCAL_STORAGE_DIR"] = str(_TMP_DIR / "storage")
os.environ["SEED_DEPARTMENTS"] = "false"
os.environ["APP_ENV"] = "test"
os.environ["AUTO_ADMIN_EMAILS"] = "admin@example.com"
os.environ["MAX_UPLOAD_BYTES"] = str(256 * 1024)
for _key in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER", "SENTRY_DSN"):
    os.environ.pop(_key, None)

import app.auth as auth  # noqa: E402
from app import models  # noqa: E402
from app.main import app  # noqa: E402

from fastapi.testclient import TestClient  # noqa: E402

# Schema resets run through a plain sync engine on the same file.
sync_engine = create_engine(f"sqlite:///{_DB_PATH}")


@pytest.fixture(autouse=True)
def reset_schema():
    SQLModel.metadata.drop_all(sync_engine)
    SQLModel.metadata.create_all(sync_engine)
    yield


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user() -> Callable[..., Tuple[str, str]]:
    """Return a factory that creates a user directly in the DB and returns (id, token)."""

    def _create(
        email: str,
        role: str = "user",
        name: Optional[str] = None,
        phone_number: Optional[str] = None,
        password: str = "testpass",
    ) -> Tuple[str, str]:
        with Session(sync_engine) as session:
            user = models.User(
                name=name or email.split("@")[0],
                email=email.lower(),
                phone_number=phone_number,
                student_id="S-" + email.split("@")[0],
                department="Computer Science",
                password_hash=auth.get_password_hash(password),
                role=role,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            return user.id, auth.create_access_token(subject=user.id, role=role)

    return _create


@pytest.fixture
def make_department() -> Callable[..., Tuple[str, str]]:
    """Return a factory that creates a department principal and returns (id, token)."""

    def _create(code: str, name: Optional[str] = None, password: str = "deptpass") -> Tuple[str, str]:
        with Session(sync_engine) as session:
            department = models.Department(
                name=name or f"{code} office",
                code=code,
                email=f"{code.lower()}@example.com",
                password_hash=auth.get_password_hash(password),
            )
            session.add(department)
            session.commit()
            session.refresh(department)
            return department.id, auth.create_access_token(subject=department.id, role="department")

    return _create


@pytest.fixture
def png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (16, 16), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def submit(client) -> Callable[..., dict]:
    """Create a grievance through the API and return the response data."""

    def _submit(token: str, category: str = "Academic", title: str = "Lab timetable clash", **extra) -> dict:
        fields = {"title": title, "description": "Two labs are scheduled at the same time", "category": category}
        fields.update(extra)
        resp = client.post("/api/grievances", data=fields, headers=bearer(token))
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _submit
