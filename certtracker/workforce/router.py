"""Workforce router — Employee, Position and PositionRequirement endpoints.

Routes:
    /employees                              — List, create employees
    /employees/{id}                         — Get, update, deactivate
    /employees/{id}/positions               — Assign a position
    /employees/{id}/positions/{position_id} — Unassign a position
    /employees/{id}/primary-position        — Set the primary position
    /employees/{id}/repair-positions        — Re-validate position references
    /positions                              — List, create positions
    /positions/{id}                         — Get, update, deactivate
    /position-requirements                  — List, create requirements
    /position-requirements/position/{id}    — Requirements of one position
    /position-requirements/employee/{id}    — Requirement coverage of one employee
    /position-requirements/{id}             — Update, deactivate
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from certtracker.auth.dependencies import get_current_user, require_admin
from certtracker.auth.models import User
from certtracker.common.pagination import PaginatedResponse, PaginationParams
from certtracker.database import get_db
from certtracker.workforce.schemas import (
    EmployeeCreate,
    EmployeeRequirementsResponse,
    EmployeeResponse,
    EmployeeUpdate,
    PositionAssignment,
    PositionCreate,
    PositionResponse,
    PositionUpdate,
    RepairResponse,
    RequirementCreate,
    RequirementResponse,
    RequirementUpdate,
)
from certtracker.workforce.service import EmployeeService, PositionService, RequirementService


# ═════════════════════════════════════════════════════════════════════
# Routers
# ═════════════════════════════════════════════════════════════════════

employees_router = APIRouter(prefix="", tags=["employees"])
positions_router = APIRouter(prefix="", tags=["positions"])
requirements_router = APIRouter(prefix="", tags=["position-requirements"])


# ═════════════════════════════════════════════════════════════════════
# Employees
# ═════════════════════════════════════════════════════════════════════


@employees_router.get("", response_model=PaginatedResponse[EmployeeResponse])
async def list_employees(
    search: Optional[str] = Query(default=None, description="Match name or e-mail"),
    position_id: Optional[uuid.UUID] = Query(default=None),
    include_inactive: bool = Query(default=False),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active employees by default, sorted by name."""
    page = await EmployeeService.list_employees(
        db,
        pagination,
        search=search,
        include_inactive=include_inactive,
        position_id=position_id,
    )
    page.data = [EmployeeResponse.model_validate(emp) for emp in page.data]
    return page


@employees_router.post("", response_model=EmployeeResponse, status_code=201)
async def create_employee(
    body: EmployeeCreate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService.create_employee(db, body, actor_id=user.id)
    return EmployeeResponse.model_validate(employee)


@employees_router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService.get_employee(db, employee_id)
    return EmployeeResponse.model_validate(employee)


@employees_router.patch("/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService.update_employee(db, employee_id, body, actor_id=user.id)
    return EmployeeResponse.model_validate(employee)


@employees_router.delete("/{employee_id}")
async def deactivate_employee(
    employee_id: uuid.UUID,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the employee disappears from lists and compliance counts."""
    await EmployeeService.deactivate_employee(db, employee_id, actor_id=user.id)
    return {"message": "Employee deactivated successfully"}


@employees_router.post("/{employee_id}/positions", response_model=EmployeeResponse)
async def add_employee_position(
    employee_id: uuid.UUID,
    body: PositionAssignment,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService.add_position(db, employee_id, body.position_id)
    return EmployeeResponse.model_validate(employee)


@employees_router.delete("/{employee_id}/positions/{position_id}", response_model=EmployeeResponse)
async def remove_employee_position(
    employee_id: uuid.UUID,
    position_id: uuid.UUID,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService.remove_position(db, employee_id, position_id)
    return EmployeeResponse.model_validate(employee)


@employees_router.put("/{employee_id}/primary-position", response_model=EmployeeResponse)
async def set_primary_position(
    employee_id: uuid.UUID,
    body: PositionAssignment,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService.set_primary_position(db, employee_id, body.position_id)
    return EmployeeResponse.model_validate(employee)


@employees_router.post("/{employee_id}/repair-positions", response_model=RepairResponse)
async def repair_employee_positions(
    employee_id: uuid.UUID,
    dry_run: bool = Query(default=False, description="Report changes without saving"),
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService.repair_positions(
        db, employee_id, actor_id=user.id, dry_run=dry_run,
    )


# ═════════════════════════════════════════════════════════════════════
# Positions
# ═════════════════════════════════════════════════════════════════════


@positions_router.get("", response_model=list[PositionResponse])
async def list_positions(
    include_inactive: bool = Query(default=False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    positions = await PositionService.list_positions(db, include_inactive=include_inactive)
    return [PositionResponse.model_validate(pos) for pos in positions]


@positions_router.post("", response_model=PositionResponse, status_code=201)
async def create_position(
    body: PositionCreate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    position = await PositionService.create_position(db, body, actor_id=user.id)
    return PositionResponse.model_validate(position)


@positions_router.get("/{position_id}", response_model=PositionResponse)
async def get_position(
    position_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    position = await PositionService.get_position(db, position_id)
    return PositionResponse.model_validate(position)


@positions_router.patch("/{position_id}", response_model=PositionResponse)
async def update_position(
    position_id: uuid.UUID,
    body: PositionUpdate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    position = await PositionService.update_position(db, position_id, body, actor_id=user.id)
    return PositionResponse.model_validate(position)


@positions_router.delete("/{position_id}")
async def deactivate_position(
    position_id: uuid.UUID,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await PositionService.deactivate_position(db, position_id, actor_id=user.id)
    return {"message": "Position deactivated successfully"}


# ═════════════════════════════════════════════════════════════════════
# Position requirements
# NOTE: /position/{id} and /employee/{id} are registered before /{id}.
# ═════════════════════════════════════════════════════════════════════


@requirements_router.get("", response_model=list[RequirementResponse])
async def list_requirements(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    requirements = await RequirementService.list_requirements(db)
    return [RequirementResponse.model_validate(req) for req in requirements]


@requirements_router.get("/position/{position_id}", response_model=list[RequirementResponse])
async def list_position_requirements(
    position_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    requirements = await RequirementService.list_requirements(db, position_id=position_id)
    return [RequirementResponse.model_validate(req) for req in requirements]


@requirements_router.get("/employee/{employee_id}", response_model=EmployeeRequirementsResponse)
async def employee_requirement_status(
    employee_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await RequirementService.employee_requirements(db, employee_id)


@requirements_router.post("", response_model=RequirementResponse, status_code=201)
async def create_requirement(
    body: RequirementCreate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    requirement = await RequirementService.create_requirement(db, body)
    return RequirementResponse.model_validate(requirement)


@requirements_router.patch("/{requirement_id}", response_model=RequirementResponse)
async def update_requirement(
    requirement_id: uuid.UUID,
    body: RequirementUpdate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    requirement = await RequirementService.update_requirement(db, requirement_id, body)
    return RequirementResponse.model_validate(requirement)


@requirements_router.delete("/{requirement_id}")
async def deactivate_requirement(
    requirement_id: uuid.UUID,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await RequirementService.deactivate_requirement(db, requirement_id)
    return {"message": "Requirement removed successfully"}
