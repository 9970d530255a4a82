"""Request and response models for the HTTP API.

Responses use camelCase keys (``submittedBy``, ``createdAt``, ...).
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import (
    TITLE_MAX_LENGTH,
    GrievanceCategory,
    GrievancePriority,
    GrievanceStatus,
)


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------- requests ----------

def _required_text(value: Optional[str], field_name: str) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} cannot be blank")
    return stripped


class GrievanceCreate(BaseModel):
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: str
    category: GrievanceCategory
    priority: GrievancePriority = GrievancePriority.MEDIUM

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_required_text(cls, v, info):
        if v is None:
            raise ValueError(f"Please provide a {info.field_name}")
        return _required_text(str(v), info.field_name)


class GrievanceUpdate(BaseModel):
    """Update payload. A field that is ``None`` was not sent at all.

    A field that was sent blank is an attempt to clear a required value and
    fails validation instead of being treated as "no change".
    """

    title: Optional[str] = Field(default=None, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = None
    category: Optional[GrievanceCategory] = None
    priority: Optional[GrievancePriority] = None
    status: Optional[GrievanceStatus] = None
    department: Optional[str] = None

    @field_validator("title", "description", "department", mode="before")
    @classmethod
    def reject_blank(cls, v, info):
        return _required_text(v, info.field_name) if isinstance(v, str) else v

    @field_validator("category", "priority", "status", mode="before")
    @classmethod
    def reject_blank_choice(cls, v, info):
        if isinstance(v, str) and not v.strip():
            raise ValueError(f"{info.field_name} cannot be blank")
        return v


class CommentCreate(BaseModel):
    text: str = Field(min_length=1)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        return _required_text(v, "text")


class RegisterRequest(APIModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    phone_number: Optional[str] = None
    student_id: Optional[str] = None
    department: Optional[str] = None


# ---------- responses ----------

class UserSummary(APIModel):
    id: str
    name: str
    email: str
    student_id: Optional[str] = None
    department: Optional[str] = None


class AssigneeSummary(APIModel):
    id: str
    name: str
    email: str


class CommentAuthor(APIModel):
    id: str
    name: str
    email: str
    role: Optional[str] = None


class AttachmentOut(APIModel):
    url: str
    public_id: str
    uploaded_at: Optional[datetime] = None


class CommentOut(APIModel):
    id: int
    text: str
    user: Union[CommentAuthor, str]
    created_at: Optional[datetime] = None


class GrievanceOut(APIModel):
    id: str
    title: str
    description: str
    category: str
    status: str
    priority: str
    attachments: List[AttachmentOut] = []
    comments: List[CommentOut] = []
    submitted_by: Union[UserSummary, str]
    assigned_to: Optional[Union[AssigneeSummary, str]] = None
    department: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GrievanceEnvelope(APIModel):
    success: bool = True
    data: GrievanceOut


class GrievanceListEnvelope(APIModel):
    success: bool = True
    count: int
    data: List[GrievanceOut]


class MessageEnvelope(APIModel):
    success: bool = True
    message: str


class DepartmentPublic(APIModel):
    id: str
    name: str
    code: str
    email: Optional[str] = None


class CallerPublic(APIModel):
    id: str
    role: str
    name: Optional[str] = None
    email: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    id: str
    role: str
