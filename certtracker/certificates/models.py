"""Certificate ORM models: CertificateType, Certificate, CertificateRevision."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from certtracker.common.constants import DEFAULT_VALIDITY_MONTHS, CertificateStatus
from certtracker.database import Base, utcnow

if TYPE_CHECKING:
    from certtracker.workforce.models import Position


class CertificateType(Base):
    """Kind of certificate, e.g. "First Aid", with its usual validity."""

    __tablename__ = "certificate_types"

    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(200), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    validity_months: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=DEFAULT_VALIDITY_MONTHS,
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    def __repr__(self) -> str:
        return f"<CertificateType {self.name!r}>"


class Certificate(Base):
    """A certificate held by a staff member.

    The holder is stored by name, as certificates are matched to employees
    by name throughout. ``status`` is the stored status; callers read the
    effective one through ``effective_status``.
    """

    __tablename__ = "certificates"

    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, primary_key=True, default=uuid.uuid4,
    )
    staff_member: Mapped[str] = mapped_column(sa.String(200), nullable=False, index=True)
    cert_type: Mapped[str] = mapped_column(sa.String(200), nullable=False, index=True)
    position_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, sa.ForeignKey("positions.id", ondelete="SET NULL"), nullable=True,
    )
    issue_date: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    expiration_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, index=True,
    )
    status: Mapped[CertificateStatus] = mapped_column(
        sa.Enum(CertificateStatus, name="certificate_status"),
        nullable=False,
        default=CertificateStatus.active,
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    # Attachment in blob storage
    attachment_id: Mapped[Optional[str]] = mapped_column(sa.String(100))
    attachment_name: Mapped[Optional[str]] = mapped_column(sa.String(255))
    attachment_content_type: Mapped[Optional[str]] = mapped_column(sa.String(100))

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    position: Mapped[Optional[Position]] = relationship(lazy="joined")
    revisions: Mapped[list[CertificateRevision]] = relationship(
        back_populates="certificate",
        order_by="CertificateRevision.created_at",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Certificate {self.cert_type!r} for {self.staff_member!r}>"


class CertificateRevision(Base):
    """Earlier issue of a certificate, archived on renewal."""

    __tablename__ = "certificate_revisions"

    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, primary_key=True, default=uuid.uuid4,
    )
    certificate_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("certificates.id", ondelete="CASCADE"), nullable=False,
    )
    issue_date: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    expiration_date: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    attachment_id: Mapped[Optional[str]] = mapped_column(sa.String(100))
    attachment_name: Mapped[Optional[str]] = mapped_column(sa.String(255))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    certificate: Mapped[Certificate] = relationship(back_populates="revisions")
