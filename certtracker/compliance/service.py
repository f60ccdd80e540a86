"""Compliance service — load records from the database and aggregate them."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from certtracker.certificates.models import Certificate
from certtracker.certificates.service import to_record
from certtracker.compliance.engine import compute_snapshot
from certtracker.compliance.schemas import (
    CertificateRecord,
    ComplianceSnapshot,
    EmployeeRecord,
    PositionRecord,
)
from certtracker.workforce.models import Employee, Position

logger = logging.getLogger(__name__)


class ComplianceService:

    @staticmethod
    async def load_employees(db: AsyncSession) -> list[EmployeeRecord]:
        """Every employee, inactive included, in name order."""
        result = await db.execute(
            select(Employee)
            .options(selectinload(Employee.position_links))
            .order_by(Employee.name, Employee.created_at),
        )
        return [
            EmployeeRecord(
                id=emp.id,
                name=emp.name,
                email=emp.email,
                active=emp.is_active,
                positions=emp.position_ids,
                primary_position=emp.primary_position_id,
            )
            for emp in result.scalars().unique().all()
        ]

    @staticmethod
    async def load_positions(db: AsyncSession) -> list[PositionRecord]:
        """Active positions with their required certificate type names."""
        result = await db.execute(
            select(Position)
            .where(Position.is_active.is_(True))
            .options(selectinload(Position.requirements))
            .order_by(Position.title),
        )
        return [
            PositionRecord(
                id=pos.id,
                title=pos.title,
                department=pos.department,
                required_certificate_types=pos.required_certificate_types,
            )
            for pos in result.scalars().unique().all()
        ]

    @staticmethod
    async def load_certificates(db: AsyncSession, now: datetime) -> list[CertificateRecord]:
        result = await db.execute(select(Certificate).order_by(Certificate.expiration_date))
        return [to_record(cert, now) for cert in result.scalars().unique().all()]

    @staticmethod
    async def snapshot(
        db: AsyncSession,
        now: Optional[datetime] = None,
    ) -> ComplianceSnapshot:
        now = now or datetime.now(timezone.utc)
        employees = await ComplianceService.load_employees(db)
        positions = await ComplianceService.load_positions(db)
        certificates = await ComplianceService.load_certificates(db, now)
        snapshot = compute_snapshot(employees, positions, certificates, now)
        logger.debug(
            "Compliance snapshot: %d certificates, %d employees, rate=%d%%",
            snapshot.totals.total_certificates,
            snapshot.totals.total_employees,
            snapshot.totals.compliance_rate,
        )
        return snapshot
