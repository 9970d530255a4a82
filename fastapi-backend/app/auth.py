from typing import Optional, Union
from datetime import datetime, timedelta, timezone
import logging

from pydantic import BaseModel
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlmodel import select

from .config import get_settings
from .database import get_session
from .grievance_policy import Caller, Role
from .metrics import AUTH_FAILURES
from .models import Department, User, utcnow

logger = logging.getLogger("app.auth")


class AccountExists(ValueError):
    """An account with this e-mail already exists under another role."""


_settings = get_settings()
SECRET_KEY = _settings.jwt_secret
if not SECRET_KEY:
    # Fail securely rather than signing tokens with a default key.
    raise ValueError("JWT_SECRET not found in environment or .env file.")

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _settings.jwt_access_minutes

# pbkdf2_sha256 avoids needing a working bcrypt C-extension.
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
# auto_error=False so we answer with our own 401 envelope.
security = HTTPBearer(auto_error=False)


class TokenPayload(BaseModel):
    sub: str
    role: Optional[str] = None
    exp: Optional[int] = None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(subject: str, role: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = {"sub": str(subject)}
    if role:
        to_encode["role"] = role
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": int(expire.timestamp())})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return TokenPayload(**payload)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"X-Auth-Reason": "Invalid token"},
        ) from exc


def _unauthorized(reason: str, detail: str = "Not authorized, token failed") -> HTTPException:
    AUTH_FAILURES.inc()
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"X-Auth-Reason": reason},
    )


def caller_from_account(account: Union[User, Department]) -> Caller:
    if isinstance(account, Department):
        return Caller(id=account.id, role=Role.DEPARTMENT, name=account.name, email=account.email)
    return Caller(id=account.id, role=Role.parse(account.role), name=account.name, email=account.email)


async def authenticate_user(email: str, password: str, session) -> Optional[User]:
    result = await session.exec(select(User).where(User.email == email.strip().lower()))
    user = result.first()
    if not user or not user.password_hash:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


async def authenticate_department(username: str, password: str, session) -> Optional[Department]:
    # Departments sign in with their code first, then e-mail.
    result = await session.exec(select(Department).where(Department.code == username.strip().upper()))
    department = result.first()
    if not department:
        result = await session.exec(select(Department).where(Department.email == username.strip().lower()))
        department = result.first()
    if not department or not department.password_hash:
        return None
    if not verify_password(password, department.password_hash):
        return None
    return department


async def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session=Depends(get_session),
) -> Caller:
    """Resolve the bearer token into a Caller; every grievance route depends on this."""
    if not credentials or not getattr(credentials, "credentials", None):
        raise _unauthorized("No credentials", detail="Not authorized, no token")

    try:
        payload = decode_access_token(credentials.credentials)
    except HTTPException:
        raise _unauthorized("Token decode failed")

    if Role.parse(payload.role) is Role.DEPARTMENT:
        account = await session.get(Department, payload.sub)
    else:
        account = await session.get(User, payload.sub)

    if not account:
        logger.info("Token subject %r did not resolve to an account", payload.sub)
        raise _unauthorized("Token subject not found")
    return caller_from_account(account)


async def create_user(
    session,
    name: str,
    email: str,
    password: str,
    role: str = "user",
    phone_number: Optional[str] = None,
    student_id: Optional[str] = None,
    department: Optional[str] = None,
    change_role: bool = False,
) -> User:
    """Create a user with a hashed password.

    A duplicate e-mail returns the existing row. Its role is only rewritten when
    `change_role` is set; otherwise a differing role raises `AccountExists`.
    """
    email = email.strip().lower()
    result = await session.exec(select(User).where(User.email == email))
    existing = result.first()
    if existing:
        current = existing.role or "user"
        if current != role:
            if not change_role:
                raise AccountExists(
                    f"{email} already exists with role '{current}'; pass change_role to switch it to '{role}'"
                )
            logger.warning("Changing role of %s from %s to %s", existing.id, current, role)
            existing.role = role
            existing.updated_at = utcnow()
            session.add(existing)
            await session.commit()
            await session.refresh(existing)
        return existing

    user = User(
        name=name,
        email=email,
        password_hash=get_password_hash(password),
        role=role,
        phone_number=phone_number,
        student_id=student_id,
        department=department,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def create_department(
    session,
    name: str,
    code: str,
    password: Optional[str] = None,
    email: Optional[str] = None,
    phone_number: Optional[str] = None,
) -> Department:
    """Create a department principal, or set its password if the code already exists."""
    code = code.strip().upper()
    result = await session.exec(select(Department).where(Department.code == code))
    department = result.first()
    if department is None:
        department = Department(name=name, code=code, email=email.lower() if email else None, phone_number=phone_number)
    if password:
        department.password_hash = get_password_hash(password)
    session.add(department)
    await session.commit()
    await session.refresh(department)
    return department
