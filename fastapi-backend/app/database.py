from typing import AsyncGenerator
import logging

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from .config import get_settings

logger = logging.getLogger("app.database")

DATABASE_URL = get_settings().database_url

# Ensure we use the async drivers
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")
elif DATABASE_URL.startswith("postgresql+psycopg2://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql+psycopg2://", "postgresql+asyncpg://")
elif DATABASE_URL.startswith("sqlite:///"):
    DATABASE_URL = DATABASE_URL.replace("sqlite:///", "sqlite+aiosqlite:///")

engine_kwargs = {"echo": False, "future": True}
if DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}

    if ":memory:" in DATABASE_URL or "mode=memory" in DATABASE_URL or DATABASE_URL == "sqlite+aiosqlite://":
        # In-memory DBs vanish with their connection; share one.
        engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["poolclass"] = NullPool
elif "asyncpg" in DATABASE_URL:
    engine_kwargs["poolclass"] = NullPool

engine = create_async_engine(DATABASE_URL, **engine_kwargs)

async_session_factory = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session


async def init_db() -> None:
    # Postgres schemas are owned by Alembic (`alembic upgrade head` in the
    # deployment pipeline); only SQLite dev/test databases are created here.
    dialect = engine.dialect.name
    if "postgres" in dialect:
        logger.info("Skipping create_all for %s; run alembic migrations instead", dialect)
        return

    # Register table models on the metadata before creating them.
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
