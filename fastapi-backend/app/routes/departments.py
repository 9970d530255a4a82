from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import select

from ..auth import get_current_caller
from ..database import get_session
from ..models import Department
from ..schemas import DepartmentPublic

router = APIRouter(prefix="/api/departments", tags=["departments"])


@router.get("", response_model=List[DepartmentPublic])
async def list_departments(_=Depends(get_current_caller), session=Depends(get_session)):
    """Departments an admin can assign a grievance to."""
    result = await session.exec(select(Department).order_by(Department.code))
    return result.all()
