"""Workforce schemas — positions, position requirements, employees."""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from certtracker.common.constants import DEFAULT_VALIDITY_MONTHS


# ═════════════════════════════════════════════════════════════════════
# Position
# ═════════════════════════════════════════════════════════════════════


class PositionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    department: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None


class PositionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    department: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class PositionBrief(BaseModel):
    """Minimal position info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    department: Optional[str] = None


class PositionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    department: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    required_certificate_types: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Position requirements
# ═════════════════════════════════════════════════════════════════════


class RequirementCreate(BaseModel):
    position_id: uuid.UUID
    certificate_type_id: uuid.UUID
    validity_period_months: int = Field(DEFAULT_VALIDITY_MONTHS, ge=1, le=240)
    is_required: bool = True


class RequirementUpdate(BaseModel):
    validity_period_months: Optional[int] = Field(None, ge=1, le=240)
    is_required: Optional[bool] = None
    is_active: Optional[bool] = None


class CertificateTypeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


class RequirementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    position_id: uuid.UUID
    certificate_type_id: uuid.UUID
    certificate_type: Optional[CertificateTypeBrief] = None
    validity_period_months: int
    is_required: bool
    is_active: bool
    created_at: datetime


class RequirementStatus(BaseModel):
    """One requirement of an employee's position and how it is met."""

    requirement_id: uuid.UUID
    certificate_type: str
    validity_period_months: int
    is_required: bool
    certificate_id: Optional[uuid.UUID] = None
    issue_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    is_compliant: bool = False
    expires_in: Optional[int] = Field(None, description="Days until expiry, rounded up")


class EmployeeRequirementsResponse(BaseModel):
    employee_id: uuid.UUID
    employee_name: str
    position: Optional[PositionBrief] = None
    requirements: list[RequirementStatus] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class EmployeeCreate(BaseModel):
    """Payload for creating an employee. At least one position is required."""

    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    positions: list[uuid.UUID] = Field(..., min_length=1)
    primary_position: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def _default_primary(self) -> "EmployeeCreate":
        if self.primary_position is None or self.primary_position not in self.positions:
            self.primary_position = self.positions[0]
        return self


class EmployeeUpdate(BaseModel):
    """Partial update. A primary position outside the list falls back to the first."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    positions: Optional[list[uuid.UUID]] = Field(None, min_length=1)
    primary_position: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None


class PositionAssignment(BaseModel):
    position_id: uuid.UUID


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True
    positions: list[PositionBrief] = Field(default_factory=list)
    primary_position: Optional[PositionBrief] = None
    created_at: datetime
    updated_at: datetime


class RepairResponse(BaseModel):
    """Result of re-validating one employee's position references."""

    employee_id: uuid.UUID
    changed: bool
    positions: list[uuid.UUID]
    primary_position: Optional[uuid.UUID] = None
    removed_positions: list[Any] = Field(default_factory=list)
    added_default_position: Optional[uuid.UUID] = None
