"""Certificates router — certificate types, certificates, renewals, attachments.

Routes:
    /certificate-types            — List, create types
    /certificate-types/{id}       — Update type
    /certificates                 — List (paginated, filterable), create
    /certificates/{id}            — Get, update, delete
    /certificates/{id}/renew      — Archive current issue and renew
    /certificates/{id}/attachment — Upload / download the certificate file
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from certtracker.auth.dependencies import get_current_user, require_admin
from certtracker.auth.models import User
from certtracker.certificates.schemas import (
    CertificateCreate,
    CertificateDetail,
    CertificateRenew,
    CertificateResponse,
    CertificateTypeCreate,
    CertificateTypeResponse,
    CertificateTypeUpdate,
    CertificateUpdate,
)
from certtracker.certificates.service import (
    CertificateService,
    CertificateTypeService,
    to_response,
)
from certtracker.common.constants import CertificateStatus
from certtracker.common.pagination import PaginatedResponse, PaginationParams
from certtracker.common.storage import BlobStore, get_attachment_store
from certtracker.database import get_db, utcnow


# ═════════════════════════════════════════════════════════════════════
# Routers
# ═════════════════════════════════════════════════════════════════════

types_router = APIRouter(prefix="", tags=["certificate-types"])
certificates_router = APIRouter(prefix="", tags=["certificates"])


# ── Certificate types ───────────────────────────────────────────────

@types_router.get("", response_model=list[CertificateTypeResponse])
async def list_certificate_types(
    include_inactive: bool = Query(default=False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    types = await CertificateTypeService.list_types(db, include_inactive=include_inactive)
    return [CertificateTypeResponse.model_validate(t) for t in types]


@types_router.post("", response_model=CertificateTypeResponse, status_code=201)
async def create_certificate_type(
    body: CertificateTypeCreate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    cert_type = await CertificateTypeService.create_type(db, body)
    return CertificateTypeResponse.model_validate(cert_type)


@types_router.patch("/{type_id}", response_model=CertificateTypeResponse)
async def update_certificate_type(
    type_id: uuid.UUID,
    body: CertificateTypeUpdate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    cert_type = await CertificateTypeService.update_type(db, type_id, body)
    return CertificateTypeResponse.model_validate(cert_type)


# ── GET / — list certificates ───────────────────────────────────────

@certificates_router.get("", response_model=PaginatedResponse[CertificateResponse])
async def list_certificates(
    staff_member: Optional[str] = Query(default=None),
    cert_type: Optional[str] = Query(default=None),
    position_id: Optional[uuid.UUID] = Query(default=None),
    status: Optional[CertificateStatus] = Query(default=None, description="Effective status"),
    search: Optional[str] = Query(default=None, description="Match staff member or type"),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CertificateService.list_certificates(
        db,
        pagination,
        staff_member=staff_member,
        cert_type=cert_type,
        position_id=position_id,
        status=status,
        search=search,
    )


# ── POST / — create ─────────────────────────────────────────────────

@certificates_router.post("", response_model=CertificateDetail, status_code=201)
async def create_certificate(
    body: CertificateCreate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    cert = await CertificateService.create_certificate(db, body, actor_id=user.id)
    return to_response(cert, utcnow(), detail=True)


# ── GET /{id} ───────────────────────────────────────────────────────

@certificates_router.get("/{certificate_id}", response_model=CertificateDetail)
async def get_certificate(
    certificate_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cert = await CertificateService.get_certificate(db, certificate_id)
    return to_response(cert, utcnow(), detail=True)


# ── PATCH /{id} ─────────────────────────────────────────────────────

@certificates_router.patch("/{certificate_id}", response_model=CertificateDetail)
async def update_certificate(
    certificate_id: uuid.UUID,
    body: CertificateUpdate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    cert = await CertificateService.update_certificate(db, certificate_id, body, actor_id=user.id)
    return to_response(cert, utcnow(), detail=True)


# ── DELETE /{id} ────────────────────────────────────────────────────

@certificates_router.delete("/{certificate_id}")
async def delete_certificate(
    certificate_id: uuid.UUID,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_attachment_store),
):
    await CertificateService.delete_certificate(db, certificate_id, store, actor_id=user.id)
    return {"message": "Certificate deleted successfully"}


# ── POST /{id}/renew ────────────────────────────────────────────────

@certificates_router.post("/{certificate_id}/renew", response_model=CertificateDetail)
async def renew_certificate(
    certificate_id: uuid.UUID,
    body: CertificateRenew,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    cert = await CertificateService.renew_certificate(db, certificate_id, body, actor_id=user.id)
    return to_response(cert, utcnow(), detail=True)


# ── Attachment ──────────────────────────────────────────────────────

@certificates_router.put("/{certificate_id}/attachment", response_model=CertificateDetail)
async def upload_attachment(
    certificate_id: uuid.UUID,
    file: UploadFile = File(...),
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_attachment_store),
):
    """Upload an image or PDF of the certificate, replacing the current one."""
    contents = await file.read()
    cert = await CertificateService.attach_file(
        db,
        certificate_id,
        store,
        contents=contents,
        filename=file.filename,
        content_type=file.content_type,
    )
    return to_response(cert, utcnow(), detail=True)


@certificates_router.get("/{certificate_id}/attachment")
async def download_attachment(
    certificate_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_attachment_store),
):
    path, content_type, filename = await CertificateService.get_attachment(
        db, certificate_id, store,
    )
    return FileResponse(
        path,
        media_type=content_type,
        filename=filename,
        content_disposition_type="inline",
    )
