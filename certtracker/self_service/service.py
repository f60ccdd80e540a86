"""Self-service layer — resolve the caller's employee record and their certificates.

A user account is linked to an employee by e-mail address (compared
case-insensitively); certificates are linked to the employee by name.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from certtracker.auth.models import User
from certtracker.certificates.models import Certificate
from certtracker.certificates.service import CertificateService, to_record, to_response
from certtracker.common.constants import EXPIRING_SOON_DAYS
from certtracker.common.exceptions import ForbiddenException, NotFoundException
from certtracker.common.storage import BlobStore
from certtracker.compliance.engine import days_until, is_active, is_expired, is_expiring_within
from certtracker.self_service.schemas import MyCertificate, MyComplianceStats
from certtracker.workforce.models import Employee, EmployeePosition

logger = logging.getLogger(__name__)


def to_my_certificate(cert: Certificate, now: datetime) -> MyCertificate:
    base = to_response(cert, now)
    return MyCertificate(
        **base.model_dump(),
        days_until_expiration=days_until(cert.expiration_date, now),
        expiring_soon=is_expiring_within(to_record(cert, now), now, EXPIRING_SOON_DAYS),
    )


def compliance_counts(certificates: Sequence[Certificate], now: datetime) -> MyComplianceStats:
    """Totals over the caller's certificates, using the dashboard's 30-day window."""
    records = [to_record(cert, now) for cert in certificates]
    return MyComplianceStats(
        total=len(records),
        active=sum(1 for rec in records if is_active(rec)),
        expiring_soon=sum(1 for rec in records if is_expiring_within(rec, now, EXPIRING_SOON_DAYS)),
        expired=sum(1 for rec in records if is_expired(rec)),
    )


class SelfServiceService:

    @staticmethod
    async def find_employee(db: AsyncSession, user: User) -> Employee:
        """The employee whose e-mail matches *user*'s; the oldest record wins."""
        email = (user.email or "").strip().lower()
        result = await db.execute(
            select(Employee)
            .where(func.lower(Employee.email) == email)
            .options(
                selectinload(Employee.position_links).joinedload(EmployeePosition.position),
                selectinload(Employee.primary_position),
            )
            .order_by(Employee.created_at)
            .execution_options(populate_existing=True),
        )
        employee: Optional[Employee] = result.scalars().first()
        if employee is None:
            logger.info("No employee record for user %s (%s)", user.username, user.email)
            raise NotFoundException("Employee", user.email)
        return employee

    @staticmethod
    async def certificates(db: AsyncSession, employee: Employee) -> Sequence[Certificate]:
        """The employee's certificates, soonest expiry first."""
        result = await db.execute(
            select(Certificate)
            .where(Certificate.staff_member == employee.name)
            .order_by(Certificate.expiration_date),
        )
        return result.scalars().unique().all()

    @staticmethod
    async def attachment(
        db: AsyncSession,
        employee: Employee,
        certificate_id: uuid.UUID,
        store: BlobStore,
    ) -> tuple[str, str, Optional[str]]:
        cert = await CertificateService.get_certificate(db, certificate_id)
        if cert.staff_member != employee.name:
            logger.warning(
                "%s asked for certificate %s held by %s", employee.name, certificate_id, cert.staff_member,
            )
            raise ForbiddenException("This certificate belongs to another employee.")
        return await CertificateService.get_attachment(db, certificate_id, store)
