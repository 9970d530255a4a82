import pytest
from sqlmodel import select

from app.database import async_session_factory
from app.departments import (
    CATEGORY_DEPARTMENT_CODES,
    department_code_for,
    resolve_department,
    seed_departments,
)
from app.models import Department


def test_category_table():
    assert dict(CATEGORY_DEPARTMENT_CODES) == {
        "Academic": "ACAD001",
        "Administration": "ADMIN001",
        "Infrastructure": "INFRA001",
        "Hostel": "HOSTEL001",
        "General": "GEN001",
    }
    assert department_code_for("Sports") is None
    assert department_code_for(None) is None


def test_category_table_is_read_only():
    with pytest.raises(TypeError):
        CATEGORY_DEPARTMENT_CODES["Sports"] = "SPORT001"


@pytest.mark.asyncio
async def test_seed_departments_is_idempotent():
    async with async_session_factory() as session:
        created = await seed_departments(session)
        assert sorted(d.code for d in created) == sorted(CATEGORY_DEPARTMENT_CODES.values())

        again = await seed_departments(session)
        assert again == []

        result = await session.exec(select(Department))
        assert len(result.all()) == 5


@pytest.mark.asyncio
async def test_resolve_department(make_department):
    hostel_id, _ = make_department("HOSTEL001")

    async with async_session_factory() as session:
        department = await resolve_department(session, "Hostel")
        assert department is not None
        assert department.id == hostel_id

        assert await resolve_department(session, "Academic") is None
        assert await resolve_department(session, "Sports") is None
