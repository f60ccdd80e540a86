"""Workforce service layer — positions, requirements, employees.

Uses:
  - ``paginate()`` from certtracker.common.pagination
  - ``apply_search`` from certtracker.common.filters
  - ``create_audit_entry`` from certtracker.common.audit
  - ``normalize_employee_positions`` from certtracker.compliance.engine
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from certtracker.certificates.models import Certificate, CertificateType
from certtracker.common.audit import create_audit_entry
from certtracker.common.constants import CertificateStatus
from certtracker.common.exceptions import (
    BadRequestException,
    ConflictError,
    NotFoundException,
)
from certtracker.common.filters import apply_search
from certtracker.common.pagination import PaginatedResponse, PaginationParams, paginate
from certtracker.compliance.engine import as_utc, days_until, normalize_employee_positions
from certtracker.compliance.schemas import EmployeeRecord, PositionRecord
from certtracker.workforce.models import Employee, EmployeePosition, Position, PositionRequirement
from certtracker.workforce.schemas import (
    EmployeeCreate,
    EmployeeRequirementsResponse,
    EmployeeUpdate,
    PositionBrief,
    PositionCreate,
    PositionUpdate,
    RepairResponse,
    RequirementCreate,
    RequirementStatus,
    RequirementUpdate,
)

logger = logging.getLogger(__name__)


def _position_query():
    return select(Position).options(selectinload(Position.requirements))


def _employee_query():
    return select(Employee).options(
        selectinload(Employee.position_links).joinedload(EmployeePosition.position),
        selectinload(Employee.primary_position),
    )


def _uuids(values: Sequence[Any]) -> list[uuid.UUID]:
    return [value if isinstance(value, uuid.UUID) else uuid.UUID(str(value)) for value in values]


# ═════════════════════════════════════════════════════════════════════
# PositionService
# ═════════════════════════════════════════════════════════════════════


class PositionService:
    """Async CRUD for positions."""

    @staticmethod
    async def list_positions(
        db: AsyncSession,
        *,
        include_inactive: bool = False,
    ) -> Sequence[Position]:
        query = _position_query().order_by(Position.title)
        if not include_inactive:
            query = query.where(Position.is_active.is_(True))
        return (await db.execute(query)).scalars().unique().all()

    @staticmethod
    async def get_position(db: AsyncSession, position_id: uuid.UUID) -> Position:
        result = await db.execute(
            _position_query()
            .where(Position.id == position_id)
            .execution_options(populate_existing=True),
        )
        position = result.scalars().first()
        if position is None:
            raise NotFoundException("Position", str(position_id))
        return position

    @staticmethod
    async def create_position(
        db: AsyncSession,
        data: PositionCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Position:
        existing = await db.execute(select(Position.id).where(Position.title == data.title))
        if existing.first() is not None:
            raise ConflictError("title", data.title)

        position = Position(**data.model_dump())
        db.add(position)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("title", data.title)

        await create_audit_entry(
            db,
            action="create",
            entity_type="position",
            entity_id=position.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return await PositionService.get_position(db, position.id)

    @staticmethod
    async def update_position(
        db: AsyncSession,
        position_id: uuid.UUID,
        data: PositionUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Position:
        position = await PositionService.get_position(db, position_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return position

        if "title" in changes and changes["title"] != position.title:
            clash = await db.execute(
                select(Position.id).where(
                    Position.title == changes["title"], Position.id != position_id,
                ),
            )
            if clash.first() is not None:
                raise ConflictError("title", changes["title"])

        old_values = {field: getattr(position, field) for field in changes}
        for field, value in changes.items():
            setattr(position, field, value)
        position.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="position",
            entity_id=position.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=changes,
        )
        return await PositionService.get_position(db, position_id)

    @staticmethod
    async def deactivate_position(
        db: AsyncSession,
        position_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Position:
        """Soft delete. Employees keep their link until positions are repaired."""
        position = await PositionService.get_position(db, position_id)
        position.is_active = False
        position.updated_at = datetime.now(timezone.utc)
        await db.flush()
        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="position",
            entity_id=position.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        return position


# ═════════════════════════════════════════════════════════════════════
# RequirementService
# ═════════════════════════════════════════════════════════════════════


class RequirementService:
    """Certificate types required per position."""

    @staticmethod
    async def list_requirements(
        db: AsyncSession,
        *,
        position_id: Optional[uuid.UUID] = None,
    ) -> Sequence[PositionRequirement]:
        query = (
            select(PositionRequirement)
            .where(PositionRequirement.is_active.is_(True))
            .order_by(PositionRequirement.created_at)
        )
        if position_id is not None:
            query = query.where(PositionRequirement.position_id == position_id)
        return (await db.execute(query)).scalars().unique().all()

    @staticmethod
    async def get_requirement(db: AsyncSession, requirement_id: uuid.UUID) -> PositionRequirement:
        requirement = await db.get(PositionRequirement, requirement_id)
        if requirement is None:
            raise NotFoundException("PositionRequirement", str(requirement_id))
        return requirement

    @staticmethod
    async def create_requirement(
        db: AsyncSession,
        data: RequirementCreate,
    ) -> PositionRequirement:
        if await db.get(Position, data.position_id) is None:
            raise NotFoundException("Position", str(data.position_id))
        if await db.get(CertificateType, data.certificate_type_id) is None:
            raise NotFoundException("CertificateType", str(data.certificate_type_id))

        duplicate = await db.execute(
            select(PositionRequirement.id).where(
                PositionRequirement.position_id == data.position_id,
                PositionRequirement.certificate_type_id == data.certificate_type_id,
            ),
        )
        if duplicate.first() is not None:
            raise ConflictError("certificate_type_id", str(data.certificate_type_id))

        requirement = PositionRequirement(**data.model_dump())
        db.add(requirement)
        await db.flush()
        await db.refresh(requirement, attribute_names=["certificate_type"])
        return requirement

    @staticmethod
    async def update_requirement(
        db: AsyncSession,
        requirement_id: uuid.UUID,
        data: RequirementUpdate,
    ) -> PositionRequirement:
        requirement = await RequirementService.get_requirement(db, requirement_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(requirement, field, value)
        requirement.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return requirement

    @staticmethod
    async def deactivate_requirement(db: AsyncSession, requirement_id: uuid.UUID) -> None:
        requirement = await RequirementService.get_requirement(db, requirement_id)
        requirement.is_active = False
        requirement.updated_at = datetime.now(timezone.utc)
        await db.flush()

    @staticmethod
    async def employee_requirements(
        db: AsyncSession,
        employee_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> EmployeeRequirementsResponse:
        """How the employee's primary position requirements are covered.

        Falls back to the first position when no primary is set. Each
        requirement is matched to the employee's newest certificate of that
        type (by issue date).
        """
        now = now or datetime.now(timezone.utc)
        employee = await EmployeeService.get_employee(db, employee_id)
        position = employee.primary_position or next(iter(employee.positions), None)

        response = EmployeeRequirementsResponse(
            employee_id=employee.id, employee_name=employee.name,
        )
        if position is None:
            return response
        response.position = PositionBrief.model_validate(position)

        requirements = await RequirementService.list_requirements(db, position_id=position.id)
        certificates = (
            await db.execute(
                select(Certificate)
                .where(Certificate.staff_member == employee.name)
                .order_by(Certificate.issue_date.desc()),
            )
        ).scalars().unique().all()

        newest: dict[str, Certificate] = {}
        for cert in certificates:
            newest.setdefault(cert.cert_type, cert)

        for req in requirements:
            type_name = req.certificate_type.name
            status = RequirementStatus(
                requirement_id=req.id,
                certificate_type=type_name,
                validity_period_months=req.validity_period_months,
                is_required=req.is_required,
            )
            cert = newest.get(type_name)
            if cert is not None:
                status.certificate_id = cert.id
                status.issue_date = cert.issue_date
                status.expiration_date = cert.expiration_date
                status.is_compliant = (
                    cert.status != CertificateStatus.revoked
                    and as_utc(cert.expiration_date) > as_utc(now)
                )
                status.expires_in = days_until(cert.expiration_date, now)
            response.requirements.append(status)
        return response


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async CRUD and position management for employees."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _require_positions(db: AsyncSession, position_ids: Sequence[uuid.UUID]) -> None:
        if not position_ids:
            return
        found = set(
            (
                await db.execute(
                    select(Position.id).where(
                        Position.id.in_(position_ids), Position.is_active.is_(True),
                    ),
                )
            ).scalars().all()
        )
        for position_id in position_ids:
            if position_id not in found:
                raise NotFoundException("Position", str(position_id))

    @staticmethod
    def _snapshot(employee: Employee) -> dict[str, Any]:
        return {
            "name": employee.name,
            "email": employee.email,
            "is_active": employee.is_active,
            "positions": [str(pid) for pid in employee.position_ids],
            "primary_position": (
                str(employee.primary_position_id) if employee.primary_position_id else None
            ),
        }

    # ── List / get ──────────────────────────────────────────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        include_inactive: bool = False,
        position_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        query = _employee_query()
        if not include_inactive:
            query = query.where(Employee.is_active.is_(True))
        if position_id is not None:
            query = query.where(
                Employee.position_links.any(EmployeePosition.position_id == position_id),
            )
        query = apply_search(query, Employee, search, ["name", "email"])
        if not pagination.sort:
            query = query.order_by(Employee.name)
        return await paginate(db, query, pagination, model=Employee)

    @staticmethod
    async def get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        result = await db.execute(
            _employee_query()
            .where(Employee.id == employee_id)
            .execution_options(populate_existing=True),
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    # ── Create / update / deactivate ────────────────────────────────

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        positions = list(dict.fromkeys(data.positions))
        await EmployeeService._require_positions(db, positions)

        employee = Employee(
            name=data.name,
            email=data.email,
            phone=data.phone,
            primary_position_id=data.primary_position,
        )
        employee.position_links = [
            EmployeePosition(position_id=pid, sort_order=order)
            for order, pid in enumerate(positions)
        ]
        db.add(employee)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        logger.info("Created employee %s (%s)", employee.name, employee.id)
        return await EmployeeService.get_employee(db, employee.id)

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Partial update. The primary position is kept inside the position list."""
        employee = await EmployeeService.get_employee(db, employee_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return employee

        old_values = EmployeeService._snapshot(employee)

        for field in ("name", "email", "phone", "is_active"):
            if field in changes:
                setattr(employee, field, changes[field])

        if changes.get("positions") is not None:
            positions = list(dict.fromkeys(changes["positions"]))
            await EmployeeService._require_positions(db, positions)
            employee.set_positions(positions)

        current = employee.position_ids
        primary = changes.get("primary_position", employee.primary_position_id)
        if primary not in current:
            primary = current[0] if current else None
        employee.primary_position_id = primary

        employee.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return await EmployeeService.get_employee(db, employee_id)

    @staticmethod
    async def deactivate_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        employee = await EmployeeService.get_employee(db, employee_id)
        employee.is_active = False
        employee.updated_at = datetime.now(timezone.utc)
        await db.flush()
        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        return employee

    # ── Position management ─────────────────────────────────────────

    @staticmethod
    async def add_position(
        db: AsyncSession,
        employee_id: uuid.UUID,
        position_id: uuid.UUID,
    ) -> Employee:
        employee = await EmployeeService.get_employee(db, employee_id)
        if position_id in employee.position_ids:
            raise BadRequestException("Position already assigned to this employee.")
        await EmployeeService._require_positions(db, [position_id])

        employee.set_positions([*employee.position_ids, position_id])
        if employee.primary_position_id is None:
            employee.primary_position_id = position_id
        employee.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return await EmployeeService.get_employee(db, employee_id)

    @staticmethod
    async def remove_position(
        db: AsyncSession,
        employee_id: uuid.UUID,
        position_id: uuid.UUID,
    ) -> Employee:
        """Unassign a position; a removed primary moves to the first remaining one."""
        employee = await EmployeeService.get_employee(db, employee_id)
        if position_id not in employee.position_ids:
            raise BadRequestException("Position not assigned to this employee.")

        remaining = [pid for pid in employee.position_ids if pid != position_id]
        employee.set_positions(remaining)
        if employee.primary_position_id == position_id:
            employee.primary_position_id = remaining[0] if remaining else None
        employee.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return await EmployeeService.get_employee(db, employee_id)

    @staticmethod
    async def set_primary_position(
        db: AsyncSession,
        employee_id: uuid.UUID,
        position_id: uuid.UUID,
    ) -> Employee:
        employee = await EmployeeService.get_employee(db, employee_id)
        if position_id not in employee.position_ids:
            raise BadRequestException("Position not assigned to this employee.")
        employee.primary_position_id = position_id
        employee.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return await EmployeeService.get_employee(db, employee_id)

    # ── Repair ──────────────────────────────────────────────────────

    @staticmethod
    async def repair_positions(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
        assign_default: bool = True,
        dry_run: bool = False,
        known_positions: Optional[Sequence[PositionRecord]] = None,
    ) -> RepairResponse:
        """Re-validate one employee's positions against the active positions.

        Links to inactive positions are dropped, an employee left with none
        gets the first active position, and the primary is pulled back into
        the list.
        """
        employee = await EmployeeService.get_employee(db, employee_id)
        if known_positions is None:
            active = await PositionService.list_positions(db)
            known_positions = [PositionRecord(id=pos.id, title=pos.title) for pos in active]

        result = normalize_employee_positions(
            EmployeeRecord(
                id=employee.id,
                name=employee.name,
                positions=employee.position_ids,
                primary_position=employee.primary_position_id,
            ),
            known_positions,
            assign_default=assign_default,
        )

        response = RepairResponse(
            employee_id=employee.id,
            changed=result.changed,
            positions=_uuids(result.positions),
            primary_position=(
                uuid.UUID(result.primary_position) if result.primary_position else None
            ),
            removed_positions=result.removed_positions,
            added_default_position=(
                uuid.UUID(result.added_default_position)
                if result.added_default_position else None
            ),
        )
        if not result.changed or dry_run:
            return response

        old_values = EmployeeService._snapshot(employee)
        employee.set_positions(response.positions)
        employee.primary_position_id = response.primary_position
        employee.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="repair",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=response.model_dump(mode="json", exclude={"employee_id", "changed"}),
        )
        logger.info(
            "Repaired positions for %s: removed=%s default=%s primary=%s",
            employee.name,
            result.removed_positions,
            result.added_default_position,
            result.primary_position,
        )
        return response
