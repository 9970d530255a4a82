"""
Category to department routing.

Each grievance category is owned by one department, identified by a fixed
code. The table is immutable; a department row with the matching code may or
may not exist in the database, and a missing row simply leaves the
grievance unassigned.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import List, Mapping, Optional
import logging

from sqlmodel import select

from .models import Department, GrievanceCategory

logger = logging.getLogger("app.departments")

CATEGORY_DEPARTMENT_CODES: Mapping[str, str] = MappingProxyType(
    {
        GrievanceCategory.ACADEMIC.value: "ACAD001",
        GrievanceCategory.ADMINISTRATION.value: "ADMIN001",
        GrievanceCategory.INFRASTRUCTURE.value: "INFRA001",
        GrievanceCategory.HOSTEL.value: "HOSTEL001",
        GrievanceCategory.GENERAL.value: "GEN001",
    }
)

# Display names used when seeding a fresh database.
DEFAULT_DEPARTMENT_NAMES: Mapping[str, str] = MappingProxyType(
    {
        "ACAD001": "Academic Affairs",
        "ADMIN001": "Administration Office",
        "INFRA001": "Infrastructure and Maintenance",
        "HOSTEL001": "Hostel Management",
        "GEN001": "General Grievance Cell",
    }
)


def department_code_for(category: Optional[str]) -> Optional[str]:
    if not category:
        return None
    return CATEGORY_DEPARTMENT_CODES.get(getattr(category, "value", category))


async def resolve_department(session, category: Optional[str]) -> Optional[Department]:
    code = department_code_for(category)
    if code is None:
        return None
    result = await session.exec(select(Department).where(Department.code == code))
    department = result.first()
    if department is None:
        logger.info("No department with code %s for category %s", code, category)
    return department


async def seed_departments(session) -> List[Department]:
    """Create any department from the routing table that is missing. Returns the new rows."""
    result = await session.exec(select(Department))
    existing_codes = {d.code for d in result.all()}

    to_add = [
        Department(name=DEFAULT_DEPARTMENT_NAMES[code], code=code)
        for code in CATEGORY_DEPARTMENT_CODES.values()
        if code not in existing_codes
    ]
    if to_add:
        session.add_all(to_add)
        await session.commit()
        logger.info("Seeded departments: %s", [d.code for d in to_add])
    return to_add


__all__ = [
    "CATEGORY_DEPARTMENT_CODES",
    "DEFAULT_DEPARTMENT_NAMES",
    "department_code_for",
    "resolve_department",
    "seed_departments",
]
