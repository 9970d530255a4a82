"""
Database access for grievances.

Attachments and comments are child rows read back in insertion order.
Reference expansion ("populate") batch-loads the referenced users and folds
their public fields into the response model.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from sqlmodel import select

from .grievance_policy import Updated
from .models import (
    Department,
    Grievance,
    GrievanceAttachment,
    GrievanceComment,
    User,
    as_utc,
    utcnow,
)
from .schemas import (
    AssigneeSummary,
    AttachmentOut,
    CommentAuthor,
    CommentOut,
    GrievanceCreate,
    GrievanceOut,
    UserSummary,
)
from .storage import StoredFile

logger = logging.getLogger("app.grievance_store")

SORTABLE_COLUMNS = {
    "createdAt": Grievance.created_at,
    "created_at": Grievance.created_at,
    "updatedAt": Grievance.updated_at,
    "updated_at": Grievance.updated_at,
    "title": Grievance.title,
    "status": Grievance.status,
    "priority": Grievance.priority,
    "category": Grievance.category,
}


def parse_sort(sort: Optional[str]) -> list:
    """Turn ``"-createdAt,title"`` into ORDER BY clauses. Default is newest first."""
    if not sort or not sort.strip():
        return [Grievance.created_at.desc()]

    clauses = []
    for token in sort.split(","):
        token = token.strip()
        if not token:
            continue
        descending = token.startswith("-")
        name = token.lstrip("+-")
        column = SORTABLE_COLUMNS.get(name)
        if column is None:
            raise ValueError(f"Cannot sort by '{name}'")
        clauses.append(column.desc() if descending else column.asc())
    return clauses or [Grievance.created_at.desc()]


def touch(grievance: Grievance) -> None:
    """Refresh updated_at, keeping it strictly increasing."""
    now = utcnow()
    previous = as_utc(grievance.updated_at)
    if previous is not None and now <= previous:
        now = previous + timedelta(microseconds=1)
    grievance.updated_at = now


async def get_grievance(session, grievance_id: str) -> Optional[Grievance]:
    return await session.get(Grievance, grievance_id)


async def get_department(session, department_id: str) -> Optional[Department]:
    return await session.get(Department, department_id)


async def list_grievances(
    session,
    submitted_by: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    sort: Optional[str] = None,
) -> Sequence[Grievance]:
    statement = select(Grievance)
    if submitted_by is not None:
        statement = statement.where(Grievance.submitted_by == submitted_by)
    if status:
        statement = statement.where(Grievance.status == status)
    if category:
        statement = statement.where(Grievance.category == category)
    if priority:
        statement = statement.where(Grievance.priority == priority)
    statement = statement.order_by(*parse_sort(sort))

    result = await session.exec(statement)
    return result.all()


async def load_children(
    session, grievance_ids: Iterable[str]
) -> Tuple[Dict[str, List[GrievanceAttachment]], Dict[str, List[GrievanceComment]]]:
    ids = list(grievance_ids)
    attachments: Dict[str, List[GrievanceAttachment]] = defaultdict(list)
    comments: Dict[str, List[GrievanceComment]] = defaultdict(list)
    if not ids:
        return attachments, comments

    result = await session.exec(
        select(GrievanceAttachment)
        .where(GrievanceAttachment.grievance_id.in_(ids))
        .order_by(GrievanceAttachment.id)
    )
    for row in result.all():
        attachments[row.grievance_id].append(row)

    result = await session.exec(
        select(GrievanceComment)
        .where(GrievanceComment.grievance_id.in_(ids))
        .order_by(GrievanceComment.id)
    )
    for row in result.all():
        comments[row.grievance_id].append(row)

    return attachments, comments


async def load_users(session, user_ids: Iterable[Optional[str]]) -> Dict[str, User]:
    ids = {uid for uid in user_ids if uid}
    if not ids:
        return {}
    result = await session.exec(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.all()}


def serialize_grievance(
    grievance: Grievance,
    attachments: Sequence[GrievanceAttachment] = (),
    comments: Sequence[GrievanceComment] = (),
    users: Optional[Dict[str, User]] = None,
    expand_comment_authors: bool = False,
) -> GrievanceOut:
    """Build the response model. With ``users`` given, references are expanded."""
    users = users or {}

    submitter = users.get(grievance.submitted_by)
    submitted_by = UserSummary.model_validate(submitter) if submitter else grievance.submitted_by

    assigned_to = None
    if grievance.assigned_to:
        assignee = users.get(grievance.assigned_to)
        assigned_to = AssigneeSummary.model_validate(assignee) if assignee else grievance.assigned_to

    comment_models = []
    for c in comments:
        author = users.get(c.user_id) if expand_comment_authors else None
        comment_models.append(
            CommentOut(
                id=c.id,
                text=c.text,
                user=CommentAuthor.model_validate(author) if author else c.user_id,
                created_at=c.created_at,
            )
        )

    return GrievanceOut(
        id=grievance.id,
        title=grievance.title,
        description=grievance.description,
        category=grievance.category,
        status=grievance.status,
        priority=grievance.priority,
        attachments=[AttachmentOut.model_validate(a) for a in attachments],
        comments=comment_models,
        submitted_by=submitted_by,
        assigned_to=assigned_to,
        department=grievance.department,
        created_at=grievance.created_at,
        updated_at=grievance.updated_at,
    )


async def render_one(session, grievance: Grievance, expand: bool = False) -> GrievanceOut:
    attachments, comments = await load_children(session, [grievance.id])
    users: Dict[str, User] = {}
    if expand:
        user_ids = [grievance.submitted_by, grievance.assigned_to]
        user_ids.extend(c.user_id for c in comments[grievance.id])
        users = await load_users(session, user_ids)
    return serialize_grievance(
        grievance,
        attachments[grievance.id],
        comments[grievance.id],
        users=users,
        expand_comment_authors=expand,
    )


async def render_many(session, grievances: Sequence[Grievance]) -> List[GrievanceOut]:
    attachments, comments = await load_children(session, [g.id for g in grievances])
    users = await load_users(
        session,
        [g.submitted_by for g in grievances] + [g.assigned_to for g in grievances],
    )
    return [
        serialize_grievance(g, attachments[g.id], comments[g.id], users=users)
        for g in grievances
    ]


async def create_grievance(
    session,
    submitted_by: str,
    payload: GrievanceCreate,
    department: Optional[Department] = None,
    attachment: Optional[StoredFile] = None,
) -> Grievance:
    grievance = Grievance(
        title=payload.title,
        description=payload.description,
        category=payload.category.value,
        priority=payload.priority.value,
        submitted_by=submitted_by,
        department=department.id if department else None,
    )
    session.add(grievance)
    if attachment is not None:
        session.add(
            GrievanceAttachment(
                grievance_id=grievance.id,
                url=attachment.url,
                public_id=attachment.public_id,
            )
        )
    await session.commit()
    await session.refresh(grievance)
    return grievance


async def apply_update(session, grievance: Grievance, outcome: Updated) -> Grievance:
    if not outcome.changes and outcome.attachment is None and outcome.comment is None:
        # Nothing to write, so updated_at stays put.
        return grievance

    for name, value in outcome.changes.items():
        setattr(grievance, name, getattr(value, "value", value))

    if outcome.attachment is not None:
        session.add(
            GrievanceAttachment(
                grievance_id=grievance.id,
                url=outcome.attachment.url,
                public_id=outcome.attachment.public_id,
            )
        )
    if outcome.comment is not None:
        session.add(
            GrievanceComment(
                grievance_id=grievance.id,
                text=outcome.comment.text,
                user_id=outcome.comment.author_id,
            )
        )

    touch(grievance)
    session.add(grievance)
    await session.commit()
    await session.refresh(grievance)
    return grievance


async def purge_grievance(session, grievance: Grievance) -> None:
    """Hard-delete a grievance together with its attachments and comments."""
    attachments, comments = await load_children(session, [grievance.id])
    for row in [*attachments[grievance.id], *comments[grievance.id]]:
        await session.delete(row)
    # Children go first so the foreign keys never dangle.
    await session.flush()
    await session.delete(grievance)
    await session.commit()
    logger.info("Purged grievance %s", grievance.id)
