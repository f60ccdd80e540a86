"""Certificate service layer — types, certificates, renewals, attachments.

The stored ``status`` only records a manual revocation. Everything else is
derived on read: a certificate is EXPIRED once its expiration date has
passed, ACTIVE before that.
"""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from certtracker.certificates.models import Certificate, CertificateRevision, CertificateType
from certtracker.certificates.schemas import (
    CertificateCreate,
    CertificateDetail,
    CertificateRenew,
    CertificateResponse,
    CertificateTypeCreate,
    CertificateTypeUpdate,
    CertificateUpdate,
)
from certtracker.common.audit import create_audit_entry
from certtracker.common.constants import (
    CERTIFICATE_ATTACHMENT_MIME_TYPES,
    DEFAULT_VALIDITY_MONTHS,
    CertificateStatus,
)
from certtracker.common.exceptions import (
    BadRequestException,
    ConflictError,
    NotFoundException,
)
from certtracker.common.filters import apply_filters, apply_search
from certtracker.common.pagination import PaginatedResponse, PaginationParams, paginate
from certtracker.common.storage import BlobStore
from certtracker.compliance.engine import as_utc
from certtracker.compliance.schemas import CertificateRecord
from certtracker.config import settings
from certtracker.workforce.models import Position

logger = logging.getLogger(__name__)


# ── Helpers ─────────────────────────────────────────────────────────

def add_months(value: datetime, months: int) -> datetime:
    """Shift *value* by calendar months, clamping to the month's last day."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def effective_status(cert: Certificate, now: datetime) -> CertificateStatus:
    if cert.status == CertificateStatus.revoked:
        return CertificateStatus.revoked
    if as_utc(cert.expiration_date) <= as_utc(now):
        return CertificateStatus.expired
    return CertificateStatus.active


def to_response(cert: Certificate, now: datetime, *, detail: bool = False) -> CertificateResponse:
    schema = CertificateDetail if detail else CertificateResponse
    response = schema.model_validate(cert)
    response.status = effective_status(cert, now)
    response.has_attachment = cert.attachment_id is not None
    return response


def to_record(cert: Certificate, now: datetime) -> CertificateRecord:
    """Project a certificate row into the compliance engine's input record."""
    return CertificateRecord(
        id=cert.id,
        staff_member=cert.staff_member,
        cert_type=cert.cert_type,
        position=cert.position_id,
        status=effective_status(cert, now),
        expiration_date=cert.expiration_date,
        attachment_id=cert.attachment_id,
    )


def _status_condition(status: CertificateStatus, now: datetime):
    if status == CertificateStatus.revoked:
        return Certificate.status == CertificateStatus.revoked
    not_revoked = Certificate.status != CertificateStatus.revoked
    if status == CertificateStatus.expired:
        return and_(not_revoked, Certificate.expiration_date <= now)
    return and_(not_revoked, Certificate.expiration_date > now)


# ═════════════════════════════════════════════════════════════════════
# CertificateTypeService
# ═════════════════════════════════════════════════════════════════════


class CertificateTypeService:
    """Catalogue of certificate types."""

    @staticmethod
    async def list_types(
        db: AsyncSession,
        *,
        include_inactive: bool = False,
    ) -> Sequence[CertificateType]:
        query = select(CertificateType).order_by(CertificateType.name)
        if not include_inactive:
            query = query.where(CertificateType.is_active.is_(True))
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def get_type(db: AsyncSession, type_id: uuid.UUID) -> CertificateType:
        cert_type = await db.get(CertificateType, type_id)
        if cert_type is None:
            raise NotFoundException("CertificateType", str(type_id))
        return cert_type

    @staticmethod
    async def find_by_name(db: AsyncSession, name: str) -> Optional[CertificateType]:
        result = await db.execute(select(CertificateType).where(CertificateType.name == name))
        return result.scalars().first()

    @staticmethod
    async def create_type(db: AsyncSession, data: CertificateTypeCreate) -> CertificateType:
        if await CertificateTypeService.find_by_name(db, data.name) is not None:
            raise ConflictError("name", data.name)
        cert_type = CertificateType(**data.model_dump())
        db.add(cert_type)
        await db.flush()
        return cert_type

    @staticmethod
    async def update_type(
        db: AsyncSession,
        type_id: uuid.UUID,
        data: CertificateTypeUpdate,
    ) -> CertificateType:
        cert_type = await CertificateTypeService.get_type(db, type_id)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] != cert_type.name:
            if await CertificateTypeService.find_by_name(db, changes["name"]) is not None:
                raise ConflictError("name", changes["name"])
        for field, value in changes.items():
            setattr(cert_type, field, value)
        await db.flush()
        return cert_type


# ═════════════════════════════════════════════════════════════════════
# CertificateService
# ═════════════════════════════════════════════════════════════════════


class CertificateService:
    """Async CRUD, renewal and attachments for certificates."""

    # ── List / get ──────────────────────────────────────────────────

    @staticmethod
    async def list_certificates(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        now: Optional[datetime] = None,
        staff_member: Optional[str] = None,
        cert_type: Optional[str] = None,
        position_id: Optional[uuid.UUID] = None,
        status: Optional[CertificateStatus] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        now = now or datetime.now(timezone.utc)
        query = select(Certificate)
        query = apply_filters(
            query,
            Certificate,
            {
                "staff_member": staff_member,
                "cert_type": cert_type,
                "position_id": position_id,
            },
        )
        if status is not None:
            query = query.where(_status_condition(status, now))
        query = apply_search(query, Certificate, search, ["staff_member", "cert_type"])
        if not pagination.sort:
            query = query.order_by(Certificate.expiration_date)

        page = await paginate(db, query, pagination, model=Certificate)
        page.data = [to_response(cert, now) for cert in page.data]
        return page

    @staticmethod
    async def load_all(db: AsyncSession) -> Sequence[Certificate]:
        return (await db.execute(select(Certificate))).scalars().unique().all()

    @staticmethod
    async def get_certificate(
        db: AsyncSession,
        certificate_id: uuid.UUID,
    ) -> Certificate:
        result = await db.execute(
            select(Certificate)
            .where(Certificate.id == certificate_id)
            .options(selectinload(Certificate.revisions))
            .execution_options(populate_existing=True),
        )
        cert = result.scalars().unique().first()
        if cert is None:
            raise NotFoundException("Certificate", str(certificate_id))
        return cert

    # ── Create / update / delete ────────────────────────────────────

    @staticmethod
    async def _validity_months(db: AsyncSession, cert_type: str) -> int:
        known = await CertificateTypeService.find_by_name(db, cert_type)
        return known.validity_months if known is not None else DEFAULT_VALIDITY_MONTHS

    @staticmethod
    async def _require_position(db: AsyncSession, position_id: Optional[uuid.UUID]) -> None:
        if position_id is not None and await db.get(Position, position_id) is None:
            raise NotFoundException("Position", str(position_id))

    @staticmethod
    async def create_certificate(
        db: AsyncSession,
        data: CertificateCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Certificate:
        await CertificateService._require_position(db, data.position_id)

        expiration = data.expiration_date
        if expiration is None:
            months = await CertificateService._validity_months(db, data.cert_type)
            expiration = add_months(data.issue_date, months)

        cert = Certificate(
            staff_member=data.staff_member,
            cert_type=data.cert_type,
            position_id=data.position_id,
            issue_date=data.issue_date,
            expiration_date=expiration,
            notes=data.notes,
            status=CertificateStatus.active,
        )
        db.add(cert)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="certificate",
            entity_id=cert.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return await CertificateService.get_certificate(db, cert.id)

    @staticmethod
    async def update_certificate(
        db: AsyncSession,
        certificate_id: uuid.UUID,
        data: CertificateUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Certificate:
        cert = await CertificateService.get_certificate(db, certificate_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return cert

        if "position_id" in changes:
            await CertificateService._require_position(db, changes["position_id"])

        revoked = changes.pop("revoked", None)
        old_values = {
            field: getattr(cert, field) for field in changes
        }
        for field, value in changes.items():
            setattr(cert, field, value)
        if revoked is not None:
            old_values["status"] = cert.status.value
            cert.status = CertificateStatus.revoked if revoked else CertificateStatus.active

        if as_utc(cert.expiration_date) <= as_utc(cert.issue_date):
            raise BadRequestException("expiration_date must be after issue_date.")

        cert.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="certificate",
            entity_id=cert.id,
            actor_id=actor_id,
            old_values={key: _jsonable(value) for key, value in old_values.items()},
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return await CertificateService.get_certificate(db, certificate_id)

    @staticmethod
    async def delete_certificate(
        db: AsyncSession,
        certificate_id: uuid.UUID,
        store: BlobStore,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Delete a certificate, its revisions and every stored attachment."""
        cert = await CertificateService.get_certificate(db, certificate_id)
        blob_ids = [cert.attachment_id] + [rev.attachment_id for rev in cert.revisions]
        snapshot = {
            "staff_member": cert.staff_member,
            "cert_type": cert.cert_type,
            "expiration_date": cert.expiration_date.isoformat(),
        }

        await db.delete(cert)
        await db.flush()
        for blob_id in filter(None, dict.fromkeys(blob_ids)):
            store.delete(blob_id)

        await create_audit_entry(
            db,
            action="delete",
            entity_type="certificate",
            entity_id=certificate_id,
            actor_id=actor_id,
            old_values=snapshot,
        )

    # ── Renewal ─────────────────────────────────────────────────────

    @staticmethod
    async def renew_certificate(
        db: AsyncSession,
        certificate_id: uuid.UUID,
        data: CertificateRenew,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Certificate:
        """Archive the current issue as a revision and apply the new dates.

        The attachment moves to the revision; the renewed certificate starts
        without one. A revocation is lifted.
        """
        cert = await CertificateService.get_certificate(db, certificate_id)

        expiration = data.expiration_date
        if expiration is None:
            months = await CertificateService._validity_months(db, cert.cert_type)
            expiration = add_months(data.issue_date, months)

        previous = {
            "issue_date": cert.issue_date.isoformat(),
            "expiration_date": cert.expiration_date.isoformat(),
            "status": cert.status.value,
        }
        cert.revisions.append(
            CertificateRevision(
                issue_date=cert.issue_date,
                expiration_date=cert.expiration_date,
                attachment_id=cert.attachment_id,
                attachment_name=cert.attachment_name,
            )
        )
        cert.issue_date = data.issue_date
        cert.expiration_date = expiration
        cert.status = CertificateStatus.active
        cert.attachment_id = None
        cert.attachment_name = None
        cert.attachment_content_type = None
        cert.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="renew",
            entity_type="certificate",
            entity_id=cert.id,
            actor_id=actor_id,
            old_values=previous,
            new_values={
                "issue_date": data.issue_date.isoformat(),
                "expiration_date": expiration.isoformat(),
            },
        )
        logger.info("Renewed certificate %s until %s", cert.id, expiration.date())
        return await CertificateService.get_certificate(db, certificate_id)

    # ── Attachments ─────────────────────────────────────────────────

    @staticmethod
    async def attach_file(
        db: AsyncSession,
        certificate_id: uuid.UUID,
        store: BlobStore,
        *,
        contents: bytes,
        filename: Optional[str],
        content_type: Optional[str],
    ) -> Certificate:
        """Store an image/PDF for the certificate, replacing any current one."""
        if content_type not in CERTIFICATE_ATTACHMENT_MIME_TYPES:
            raise BadRequestException(
                f"File type '{content_type}' not allowed. Accepted: JPEG, PNG, GIF, WEBP, PDF.",
            )
        max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
        if len(contents) > max_bytes:
            raise BadRequestException(
                f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE_MB} MB.",
            )
        if not contents:
            raise BadRequestException("Uploaded file is empty.")

        cert = await CertificateService.get_certificate(db, certificate_id)
        replaced = cert.attachment_id

        cert.attachment_id = store.save(contents, filename)
        cert.attachment_name = filename
        cert.attachment_content_type = content_type
        cert.updated_at = datetime.now(timezone.utc)
        await db.flush()

        if replaced:
            store.delete(replaced)
        return await CertificateService.get_certificate(db, certificate_id)

    @staticmethod
    async def get_attachment(
        db: AsyncSession,
        certificate_id: uuid.UUID,
        store: BlobStore,
    ) -> tuple[str, str, Optional[str]]:
        """Return ``(path, content_type, filename)`` of the current attachment."""
        cert = await CertificateService.get_certificate(db, certificate_id)
        if not cert.attachment_id:
            raise NotFoundException("Attachment", str(certificate_id))
        try:
            path = store.path_for(cert.attachment_id)
        except FileNotFoundError:
            logger.error("Attachment blob %s for certificate %s is missing", cert.attachment_id, cert.id)
            raise NotFoundException("Attachment", cert.attachment_id)
        return path, cert.attachment_content_type or "application/octet-stream", cert.attachment_name


def _jsonable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, CertificateStatus):
        return value.value
    return value
