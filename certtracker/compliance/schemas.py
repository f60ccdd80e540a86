"""Compliance schemas — input records for the aggregation engine and the
dashboard snapshot it produces.

Record models are deliberately loose: position references may be bare ids
or embedded objects (see ``certtracker.common.refs``), and malformed
certificates (no expiration date) are accepted and simply never match a
date window.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ═════════════════════════════════════════════════════════════════════
# Input records
# ═════════════════════════════════════════════════════════════════════


class EmployeeRecord(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Any
    name: str
    email: Optional[str] = None
    active: Optional[bool] = None
    positions: list[Any] = Field(default_factory=list)
    primary_position: Any = None


class PositionRecord(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Any
    title: str
    department: Optional[str] = None
    required_certificate_types: list[str] = Field(default_factory=list)


class CertificateRecord(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Any
    staff_member: str
    cert_type: str
    position: Any = None
    status: Any = None
    expiration_date: Optional[datetime] = None
    attachment_id: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Dashboard snapshot
# ═════════════════════════════════════════════════════════════════════


class ComplianceTotals(BaseModel):
    """Top-level KPI cards."""

    total_certificates: int = 0
    active_certificates: int = 0
    expiring_soon: int = Field(0, description="ACTIVE and expiring within 30 days")
    expired: int = 0
    total_employees: int = Field(0, description="Employees not explicitly inactive")
    compliance_rate: int = Field(
        0, ge=0, le=100, description="Satisfied requirement pairs, percent",
    )


class PositionCompliance(BaseModel):
    """One row of the lowest-compliance positions panel."""

    position_id: Optional[str] = None
    position: str
    department: Optional[str] = None
    employees: int
    total_certs: int
    active_certs: int
    required_certs: int
    compliance_rate: int = Field(..., ge=0, le=100)


class UrgentAction(BaseModel):
    """A soon-to-expire ACTIVE certificate."""

    certificate_id: Optional[str] = None
    employee_name: str
    certificate_type: str
    expiry_date: datetime
    days_left: int


class ComplianceSnapshot(BaseModel):
    totals: ComplianceTotals
    position_compliance: list[PositionCompliance] = Field(default_factory=list)
    urgent_actions: list[UrgentAction] = Field(default_factory=list)
    computed_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Position-reference repair
# ═════════════════════════════════════════════════════════════════════


class RepairResult(BaseModel):
    """Outcome of normalising one employee's position references."""

    positions: list[str] = Field(default_factory=list)
    primary_position: Optional[str] = None
    changed: bool = False
    removed_positions: list[str] = Field(default_factory=list)
    added_default_position: Optional[str] = None
