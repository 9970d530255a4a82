"""
Authorization and mutation rules for grievances.

Every grievance operation asks one function here what the caller may do and
gets back a tagged outcome. The functions are pure: they never touch the
database, so route handlers stay thin and the rules can be tested without a
running app.

Outcomes:

- ``Allowed``: the caller may read the grievance.
- ``Updated``: persist ``changes`` (and an optional new attachment/comment).
- ``RejectAndPurge``: an admin rejected the grievance; delete it.
- ``Forbidden`` / ``NotFound``: map straight to 403 / 404.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol, Union

from .models import GrievanceStatus


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
    DEPARTMENT = "department"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Role":
        """Map a stored role string onto the closed role set.

        Anything that is not admin or department is an ordinary user.
        """
        normalized = (value or "").strip().lower()
        if normalized == cls.ADMIN.value:
            return cls.ADMIN
        if normalized == cls.DEPARTMENT.value:
            return cls.DEPARTMENT
        return cls.USER


@dataclass(frozen=True)
class Caller:
    id: str
    role: Role
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class GrievanceLike(Protocol):
    submitted_by: str
    department: Optional[str]


@dataclass(frozen=True)
class NewAttachment:
    url: str
    public_id: str


@dataclass(frozen=True)
class NewComment:
    text: str
    author_id: str


@dataclass(frozen=True)
class GrievancePatch:
    """Fields supplied to an update. ``None`` means the field was omitted."""

    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    department: Optional[str] = None


USER_EDITABLE_FIELDS = ("title", "description", "category", "priority")


@dataclass(frozen=True)
class Allowed:
    pass


@dataclass(frozen=True)
class Updated:
    changes: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    attachment: Optional[NewAttachment] = None
    comment: Optional[NewComment] = None


@dataclass(frozen=True)
class RejectAndPurge:
    pass


@dataclass(frozen=True)
class Forbidden:
    message: str = "Not authorized"


@dataclass(frozen=True)
class NotFound:
    message: str = "Grievance not found"


CreateOutcome = Union[Allowed, Forbidden]
ReadOutcome = Union[Allowed, Forbidden, NotFound]
UpdateOutcome = Union[Updated, RejectAndPurge, Forbidden, NotFound]
CommentOutcome = Union[Updated, Forbidden, NotFound]


def _is_submitter(caller: Caller, grievance: GrievanceLike) -> bool:
    return str(grievance.submitted_by) == str(caller.id)


def decide_create(caller: Caller) -> CreateOutcome:
    # A grievance is always owned by a user account.
    if caller.role is Role.DEPARTMENT:
        return Forbidden("Departments cannot submit grievances")
    return Allowed()


def list_scope(caller: Caller) -> Optional[str]:
    """Return the submitter id a listing must be restricted to, or None for all."""
    if caller.is_admin:
        return None
    return caller.id


def decide_read(caller: Caller, grievance: Optional[GrievanceLike]) -> ReadOutcome:
    if grievance is None:
        return NotFound()
    if not caller.is_admin and not _is_submitter(caller, grievance):
        return Forbidden("Not authorized to access this grievance")
    return Allowed()


def decide_update(
    caller: Caller,
    grievance: Optional[GrievanceLike],
    patch: GrievancePatch,
    attachment: Optional[NewAttachment] = None,
) -> UpdateOutcome:
    """Decide what an update request does. Rules run in a fixed order."""
    if grievance is None:
        return NotFound()

    # Departments are authorized by assignment below, not by ownership.
    if caller.role is Role.USER and not _is_submitter(caller, grievance):
        return Forbidden("Not authorized to update this grievance")

    if caller.is_admin and patch.status == GrievanceStatus.REJECTED.value:
        return RejectAndPurge()

    if caller.role is Role.DEPARTMENT:
        if not grievance.department or str(grievance.department) != str(caller.id):
            return Forbidden("Not authorized")
        status_change = {"status": patch.status} if patch.status is not None else {}
        return Updated(changes=MappingProxyType(status_change))

    changes: dict[str, Any] = {}
    if caller.is_admin and patch.department is not None:
        changes["department"] = patch.department

    if caller.role is Role.USER:
        for name in USER_EDITABLE_FIELDS:
            value = getattr(patch, name)
            if value is not None:
                changes[name] = value

    return Updated(changes=MappingProxyType(changes), attachment=attachment)


def decide_comment(caller: Caller, grievance: Optional[GrievanceLike], text: str) -> CommentOutcome:
    if grievance is None:
        return NotFound()
    if not caller.is_admin and not _is_submitter(caller, grievance):
        return Forbidden("Not authorized to comment")
    return Updated(comment=NewComment(text=text, author_id=caller.id))


__all__ = [
    "Allowed",
    "Caller",
    "Forbidden",
    "GrievancePatch",
    "NewAttachment",
    "NewComment",
    "NotFound",
    "RejectAndPurge",
    "Role",
    "Updated",
    "decide_comment",
    "decide_create",
    "decide_read",
    "decide_update",
    "list_scope",
]
