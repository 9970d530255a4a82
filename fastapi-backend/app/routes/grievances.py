"""Grievance routes: create, list, read, update and comment."""

from __future__ import annotations

from dataclasses import replace
from types import MappingProxyType
from typing import Optional, Union
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Form, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile as StarletteUploadFile

from .. import grievance_store as store
from ..auth import get_current_caller
from ..database import get_session
from ..dependencies import optional_photo_upload
from ..errors import failures_as_store_errors
from ..grievance_policy import (
    Caller,
    Forbidden,
    GrievancePatch,
    NewAttachment,
    NotFound,
    RejectAndPurge,
    Role,
    Updated,
    decide_comment,
    decide_create,
    decide_read,
    decide_update,
    list_scope,
)
from ..metrics import GRIEVANCES_CREATED, GRIEVANCES_PURGED
from ..departments import resolve_department
from ..schemas import (
    CommentCreate,
    GrievanceCreate,
    GrievanceEnvelope,
    GrievanceListEnvelope,
    GrievanceUpdate,
    MessageEnvelope,
)
from ..sms_notifier import dispatch_detached, notify_grievance_registered
from ..storage import StoredFile, discard_attachment

logger = logging.getLogger("app.routes.grievances")

router = APIRouter(prefix="/api/grievances", tags=["grievances"])

UPDATABLE_FORM_FIELDS = ("title", "description", "category", "priority", "status", "department")


def _raise_for(outcome) -> None:
    if isinstance(outcome, NotFound):
        raise HTTPException(status_code=404, detail=outcome.message)
    if isinstance(outcome, Forbidden):
        raise HTTPException(status_code=403, detail=outcome.message)


def _as_attachment(stored: Optional[StoredFile]) -> Optional[NewAttachment]:
    if stored is None:
        return None
    return NewAttachment(url=stored.url, public_id=stored.public_id)


async def _discard_unless_recorded(upload: Optional[StoredFile], recorded: bool) -> None:
    # The upload is stored before the handler runs; drop it on every other path.
    if upload is not None and not recorded:
        await run_in_threadpool(discard_attachment, upload)


@router.post("", status_code=201, response_model=GrievanceEnvelope)
async def create_grievance(
    background_tasks: BackgroundTasks,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    priority: Optional[str] = Form(None),
    caller: Caller = Depends(get_current_caller),
    upload: Optional[StoredFile] = Depends(optional_photo_upload),
    session=Depends(get_session),
):
    recorded = False
    try:
        _raise_for(decide_create(caller))

        with failures_as_store_errors("create grievance"):
            fields = {"title": title, "description": description, "category": category}
            if priority is not None:
                fields["priority"] = priority
            payload = GrievanceCreate(**fields)

            department = await resolve_department(session, payload.category.value)

            grievance = await store.create_grievance(
                session,
                submitted_by=caller.id,
                payload=payload,
                department=department,
                attachment=upload,
            )
            recorded = True
            data = await store.render_one(session, grievance)
    finally:
        await _discard_unless_recorded(upload, recorded)

    GRIEVANCES_CREATED.labels(category=grievance.category).inc()
    logger.info("Grievance %s created by %s", grievance.id, caller.id)

    dispatch_detached(
        background_tasks,
        "grievance-registered",
        notify_grievance_registered,
        caller.id,
        grievance.title,
    )
    return GrievanceEnvelope(data=data)


@router.get("", response_model=GrievanceListEnvelope)
async def list_grievances(
    status: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    caller: Caller = Depends(get_current_caller),
    session=Depends(get_session),
):
    with failures_as_store_errors("list grievances"):
        grievances = await store.list_grievances(
            session,
            submitted_by=list_scope(caller),
            status=status,
            category=category,
            priority=priority,
            sort=sort,
        )
        data = await store.render_many(session, grievances)
    return GrievanceListEnvelope(count=len(data), data=data)


@router.get("/{grievance_id}", response_model=GrievanceEnvelope)
async def get_grievance(
    grievance_id: str,
    caller: Caller = Depends(get_current_caller),
    session=Depends(get_session),
):
    with failures_as_store_errors("get grievance"):
        grievance = await store.get_grievance(session, grievance_id)
        _raise_for(decide_read(caller, grievance))
        data = await store.render_one(session, grievance, expand=True)
    return GrievanceEnvelope(data=data)


async def _form_fields(request: Request) -> dict:
    """Collect the updatable fields actually present in the multipart body.

    Omitted fields stay absent; blank ones are kept so validation can reject them.
    """
    form = await request.form()
    present = {}
    for name in UPDATABLE_FORM_FIELDS:
        value = form.get(name)
        if value is None or isinstance(value, StarletteUploadFile):
            continue
        present[name] = value
    return present


def _validated(outcome: Updated) -> Updated:
    update = GrievanceUpdate(**dict(outcome.changes))
    changes = {}
    for name in outcome.changes:
        value = getattr(update, name)
        changes[name] = getattr(value, "value", value)
    return replace(outcome, changes=MappingProxyType(changes))


@router.put("/{grievance_id}", response_model=Union[GrievanceEnvelope, MessageEnvelope])
async def update_grievance(
    grievance_id: str,
    request: Request,
    caller: Caller = Depends(get_current_caller),
    upload: Optional[StoredFile] = Depends(optional_photo_upload),
    session=Depends(get_session),
):
    recorded = False
    try:
        with failures_as_store_errors("update grievance"):
            grievance = await store.get_grievance(session, grievance_id)
            patch = GrievancePatch(**await _form_fields(request))
            outcome = decide_update(caller, grievance, patch, attachment=_as_attachment(upload))
            _raise_for(outcome)

            if isinstance(outcome, RejectAndPurge):
                await store.purge_grievance(session, grievance)
                GRIEVANCES_PURGED.inc()
                logger.info("Grievance %s rejected by admin %s", grievance_id, caller.id)
                return MessageEnvelope(message="Grievance rejected and deleted.")

            outcome = _validated(outcome)
            if caller.role is Role.ADMIN and "department" in outcome.changes:
                if await store.get_department(session, outcome.changes["department"]) is None:
                    raise HTTPException(status_code=404, detail="Department not found")

            grievance = await store.apply_update(session, grievance, outcome)
            recorded = outcome.attachment is not None
            data = await store.render_one(session, grievance)
    finally:
        await _discard_unless_recorded(upload, recorded)
    return GrievanceEnvelope(data=data)


@router.post("/{grievance_id}/comments", response_model=GrievanceEnvelope)
async def add_comment(
    grievance_id: str,
    payload: CommentCreate,
    caller: Caller = Depends(get_current_caller),
    session=Depends(get_session),
):
    with failures_as_store_errors("add comment"):
        grievance = await store.get_grievance(session, grievance_id)
        outcome = decide_comment(caller, grievance, payload.text)
        _raise_for(outcome)

        grievance = await store.apply_update(session, grievance, outcome)
        data = await store.render_one(session, grievance)
    return GrievanceEnvelope(data=data)
