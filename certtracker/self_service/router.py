"""Self-service router — what a logged-in employee can see about themselves.

Routes:
    /me                              — The caller's employee record
    /my-certificates                 — The caller's certificates, soonest expiry first
    /my-certificates/{id}/image      — Attachment of one of the caller's certificates
    /my-compliance                   — Counts of total, active, expiring and expired
"""

import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from certtracker.auth.dependencies import get_current_user
from certtracker.auth.models import User
from certtracker.common.storage import BlobStore, get_attachment_store
from certtracker.database import get_db, utcnow
from certtracker.self_service.schemas import (
    EmployeeSummary,
    MyCertificatesResponse,
    MyComplianceResponse,
)
from certtracker.self_service.service import (
    SelfServiceService,
    compliance_counts,
    to_my_certificate,
)
from certtracker.workforce.schemas import EmployeeResponse

router = APIRouter(prefix="", tags=["self-service"])


@router.get("/me", response_model=EmployeeResponse)
async def my_employee_record(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    employee = await SelfServiceService.find_employee(db, user)
    return EmployeeResponse.model_validate(employee)


@router.get("/my-certificates", response_model=MyCertificatesResponse)
async def my_certificates(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    employee = await SelfServiceService.find_employee(db, user)
    certificates = await SelfServiceService.certificates(db, employee)
    now = utcnow()
    return MyCertificatesResponse(
        employee=EmployeeSummary.model_validate(employee),
        certificates=[to_my_certificate(cert, now) for cert in certificates],
    )


@router.get("/my-certificates/{certificate_id}/image")
async def my_certificate_image(
    certificate_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_attachment_store),
):
    employee = await SelfServiceService.find_employee(db, user)
    path, content_type, filename = await SelfServiceService.attachment(
        db, employee, certificate_id, store,
    )
    return FileResponse(
        path,
        media_type=content_type,
        filename=filename,
        content_disposition_type="inline",
        headers={"Cache-Control": "private, max-age=3600"},
    )


@router.get("/my-compliance", response_model=MyComplianceResponse)
async def my_compliance(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    employee = await SelfServiceService.find_employee(db, user)
    certificates = await SelfServiceService.certificates(db, employee)
    return MyComplianceResponse(
        employee=EmployeeSummary.model_validate(employee),
        stats=compliance_counts(certificates, utcnow()),
    )
