from typing import Optional
from datetime import datetime, timezone
from enum import Enum
import uuid

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite reads timestamps back without tzinfo; they were written as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _timestamp(**kwargs):
    return Field(sa_type=DateTime(timezone=True), **kwargs)


def _new_id() -> str:
    return str(uuid.uuid4())


class GrievanceCategory(str, Enum):
    ACADEMIC = "Academic"
    ADMINISTRATION = "Administration"
    INFRASTRUCTURE = "Infrastructure"
    HOSTEL = "Hostel"
    GENERAL = "General"


class GrievanceStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    REJECTED = "Rejected"


class GrievancePriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


TITLE_MAX_LENGTH = 100


class User(SQLModel, table=True):
    __tablename__ = "users"
    id: Optional[str] = Field(default_factory=_new_id, primary_key=True)
    name: str
    email: str = Field(sa_column_kwargs={"unique": True}, index=True)
    phone_number: Optional[str] = None
    student_id: Optional[str] = None
    # Free-text academic department of a student, unrelated to `departments`.
    department: Optional[str] = None
    password_hash: Optional[str] = None
    # Role for RBAC: 'user' or 'admin'. Department principals live in `departments`.
    role: Optional[str] = Field(default="user")
    created_at: Optional[datetime] = _timestamp(default_factory=utcnow)
    updated_at: Optional[datetime] = _timestamp(default=None)


class Department(SQLModel, table=True):
    __tablename__ = "departments"
    id: Optional[str] = Field(default_factory=_new_id, primary_key=True)
    name: str
    # Short code such as ACAD001 used by the category lookup table.
    code: str = Field(sa_column_kwargs={"unique": True}, index=True)
    email: Optional[str] = None
    phone_number: Optional[str] = None
    password_hash: Optional[str] = None
    created_at: Optional[datetime] = _timestamp(default_factory=utcnow)


class Grievance(SQLModel, table=True):
    __tablename__ = "grievances"
    id: Optional[str] = Field(default_factory=_new_id, primary_key=True)
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: str
    category: str
    status: str = Field(default=GrievanceStatus.PENDING.value, index=True)
    priority: str = Field(default=GrievancePriority.MEDIUM.value)
    submitted_by: str = Field(foreign_key="users.id", index=True)
    assigned_to: Optional[str] = Field(default=None, foreign_key="users.id")
    department: Optional[str] = Field(default=None, foreign_key="departments.id")
    created_at: Optional[datetime] = _timestamp(default_factory=utcnow, index=True)
    updated_at: Optional[datetime] = _timestamp(default_factory=utcnow)


class GrievanceAttachment(SQLModel, table=True):
    __tablename__ = "grievance_attachments"
    # Autoincrement id doubles as the insertion order.
    id: Optional[int] = Field(default=None, primary_key=True)
    grievance_id: str = Field(foreign_key="grievances.id", index=True)
    url: str
    public_id: str
    uploaded_at: Optional[datetime] = _timestamp(default_factory=utcnow)


class GrievanceComment(SQLModel, table=True):
    __tablename__ = "grievance_comments"
    id: Optional[int] = Field(default=None, primary_key=True)
    grievance_id: str = Field(foreign_key="grievances.id", index=True)
    text: str
    user_id: str = Field(foreign_key="users.id")
    created_at: Optional[datetime] = _timestamp(default_factory=utcnow)
