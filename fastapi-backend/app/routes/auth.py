"""Account routes: registration, login for users and departments, and whoami."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import select

from .. import auth
from ..config import get_settings
from ..database import get_session
from ..grievance_policy import Caller, Role
from ..metrics import AUTH_FAILURES
from ..models import User
from ..schemas import CallerPublic, RegisterRequest, TokenResponse, UserSummary

import logging

logger = logging.getLogger("app.routes.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=201, response_model=UserSummary)
async def register(payload: RegisterRequest, session=Depends(get_session)):
    email = payload.email.strip().lower()
    result = await session.exec(select(User).where(User.email == email))
    if result.first() is not None:
        raise HTTPException(status_code=400, detail="User already exists")

    role = Role.ADMIN if email in get_settings().auto_admin_emails else Role.USER
    user = await auth.create_user(
        session,
        name=payload.name,
        email=email,
        password=payload.password,
        role=role.value,
        phone_number=payload.phone_number,
        student_id=payload.student_id,
        department=payload.department,
    )
    logger.info("Registered %s account %s", role.value, user.id)
    return user


@router.post("/login", response_model=TokenResponse)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), session=Depends(get_session)):
    user = await auth.authenticate_user(form_data.username, form_data.password, session)
    if not user:
        AUTH_FAILURES.inc()
        raise HTTPException(status_code=401, detail="Invalid email or password")

    role = Role.parse(user.role).value
    token = auth.create_access_token(subject=user.id, role=role)
    return TokenResponse(access_token=token, id=str(user.id), role=role)


@router.post("/department/login", response_model=TokenResponse)
async def department_login(form_data: OAuth2PasswordRequestForm = Depends(), session=Depends(get_session)):
    department = await auth.authenticate_department(form_data.username, form_data.password, session)
    if not department:
        AUTH_FAILURES.inc()
        raise HTTPException(status_code=401, detail="Invalid department credentials")

    token = auth.create_access_token(subject=department.id, role=Role.DEPARTMENT.value)
    return TokenResponse(access_token=token, id=str(department.id), role=Role.DEPARTMENT.value)


@router.get("/me", response_model=CallerPublic)
async def me(caller: Caller = Depends(auth.get_current_caller)):
    return CallerPublic(id=caller.id, role=caller.role.value, name=caller.name, email=caller.email)
