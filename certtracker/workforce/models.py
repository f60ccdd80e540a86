"""Workforce ORM models: Position, PositionRequirement, Employee.

An employee holds an ordered list of positions (``EmployeePosition`` rows
carrying ``sort_order``) and optionally one primary position, which should
be a member of that list.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from certtracker.common.constants import DEFAULT_VALIDITY_MONTHS
from certtracker.database import Base, utcnow

if TYPE_CHECKING:
    from certtracker.certificates.models import CertificateType


# ═════════════════════════════════════════════════════════════════════
# Position
# ═════════════════════════════════════════════════════════════════════


class Position(Base):
    """Job position, e.g. "Forklift Operator" in "Warehouse"."""

    __tablename__ = "positions"

    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, primary_key=True, default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(sa.String(200), unique=True, nullable=False)
    department: Mapped[Optional[str]] = mapped_column(sa.String(200))
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    requirements: Mapped[list[PositionRequirement]] = relationship(
        back_populates="position",
        order_by="PositionRequirement.created_at",
        cascade="all, delete-orphan",
    )

    @property
    def required_certificate_types(self) -> list[str]:
        """Names of the certificate types this position requires.

        Only active, required rows count. Requires ``requirements`` and their
        ``certificate_type`` to be loaded.
        """
        return [
            req.certificate_type.name
            for req in self.requirements
            if req.is_active and req.is_required and req.certificate_type is not None
        ]

    def __repr__(self) -> str:
        return f"<Position {self.title!r}>"


# ═════════════════════════════════════════════════════════════════════
# PositionRequirement
# ═════════════════════════════════════════════════════════════════════


class PositionRequirement(Base):
    """Certificate type a position needs, with its validity period."""

    __tablename__ = "position_requirements"

    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, primary_key=True, default=uuid.uuid4,
    )
    position_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("positions.id", ondelete="CASCADE"), nullable=False,
    )
    certificate_type_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("certificate_types.id", ondelete="CASCADE"), nullable=False,
    )
    validity_period_months: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=DEFAULT_VALIDITY_MONTHS,
    )
    is_required: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    position: Mapped[Position] = relationship(back_populates="requirements")
    certificate_type: Mapped[CertificateType] = relationship(lazy="joined")

    __table_args__ = (
        sa.UniqueConstraint(
            "position_id", "certificate_type_id", name="uq_position_requirement",
        ),
    )

    def __repr__(self) -> str:
        return f"<PositionRequirement {self.position_id} → {self.certificate_type_id}>"


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class EmployeePosition(Base):
    """Association row keeping an employee's positions in order."""

    __tablename__ = "employee_positions"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("employees.id", ondelete="CASCADE"), primary_key=True,
    )
    position_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("positions.id", ondelete="CASCADE"), primary_key=True,
    )
    sort_order: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    employee: Mapped[Employee] = relationship(back_populates="position_links")
    position: Mapped[Position] = relationship(lazy="joined")


class Employee(Base):
    """Staff member. Certificates refer to employees by ``name``."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(sa.String(255))
    phone: Mapped[Optional[str]] = mapped_column(sa.String(50))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    primary_position_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, sa.ForeignKey("positions.id", ondelete="SET NULL"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    position_links: Mapped[list[EmployeePosition]] = relationship(
        back_populates="employee",
        order_by="EmployeePosition.sort_order",
        cascade="all, delete-orphan",
    )
    primary_position: Mapped[Optional[Position]] = relationship(
        foreign_keys=[primary_position_id],
    )

    @property
    def position_ids(self) -> list[uuid.UUID]:
        return [link.position_id for link in self.position_links]

    @property
    def positions(self) -> list[Position]:
        return [link.position for link in self.position_links]

    def set_positions(self, position_ids: list[uuid.UUID]) -> None:
        """Replace the ordered position list, reusing existing link rows."""
        existing = {link.position_id: link for link in self.position_links}
        links: list[EmployeePosition] = []
        for order, position_id in enumerate(dict.fromkeys(position_ids)):
            link = existing.get(position_id) or EmployeePosition(position_id=position_id)
            link.sort_order = order
            links.append(link)
        self.position_links = links

    def __repr__(self) -> str:
        return f"<Employee {self.name!r}>"
