import sys
from logging.config import fileConfig
from pathlib import Path
import asyncio

from alembic import context

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# DATABASE_URL comes from the environment or the project's .env, the same
# way the app resolves it, so alembic.ini never carries credentials.
from app.config import get_settings  # noqa: E402
from app.database import DATABASE_URL, engine  # noqa: E402
from app import models  # noqa: E402,F401
from sqlmodel import SQLModel  # noqa: E402

config.set_main_option("sqlalchemy.url", DATABASE_URL)
target_metadata = SQLModel.metadata


def run_migrations_offline():
    url = get_settings().database_url
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations():
    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)


def run_migrations_online():
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
