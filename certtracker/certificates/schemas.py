"""Certificate schemas — types, certificates, renewals, revisions."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from certtracker.common.constants import DEFAULT_VALIDITY_MONTHS, CertificateStatus
from certtracker.compliance.engine import as_utc


# ═════════════════════════════════════════════════════════════════════
# Certificate types
# ═════════════════════════════════════════════════════════════════════


class CertificateTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    validity_months: int = Field(DEFAULT_VALIDITY_MONTHS, ge=1, le=240)


class CertificateTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    validity_months: Optional[int] = Field(None, ge=1, le=240)
    is_active: Optional[bool] = None


class CertificateTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    validity_months: int
    is_active: bool
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Certificates — write schemas
# ═════════════════════════════════════════════════════════════════════


class CertificateCreate(BaseModel):
    """New certificate. ``expiration_date`` defaults to issue date + type validity."""

    staff_member: str = Field(..., min_length=1, max_length=200)
    cert_type: str = Field(..., min_length=1, max_length=200)
    position_id: Optional[uuid.UUID] = None
    issue_date: datetime
    expiration_date: Optional[datetime] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _dates_in_order(self) -> "CertificateCreate":
        if self.expiration_date is not None and as_utc(self.expiration_date) <= as_utc(self.issue_date):
            raise ValueError("expiration_date must be after issue_date")
        return self


class CertificateUpdate(BaseModel):
    staff_member: Optional[str] = Field(None, min_length=1, max_length=200)
    cert_type: Optional[str] = Field(None, min_length=1, max_length=200)
    position_id: Optional[uuid.UUID] = None
    issue_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    notes: Optional[str] = None
    revoked: Optional[bool] = Field(None, description="Mark REVOKED, or lift a revocation")


class CertificateRenew(BaseModel):
    issue_date: datetime
    expiration_date: Optional[datetime] = None

    @model_validator(mode="after")
    def _dates_in_order(self) -> "CertificateRenew":
        if self.expiration_date is not None and as_utc(self.expiration_date) <= as_utc(self.issue_date):
            raise ValueError("expiration_date must be after issue_date")
        return self


# ═════════════════════════════════════════════════════════════════════
# Certificates — read schemas
# ═════════════════════════════════════════════════════════════════════


class PositionRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str


class RevisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    issue_date: datetime
    expiration_date: datetime
    attachment_id: Optional[str] = None
    attachment_name: Optional[str] = None
    created_at: datetime


class CertificateResponse(BaseModel):
    """Certificate as returned by the API; ``status`` is the effective status."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    staff_member: str
    cert_type: str
    position_id: Optional[uuid.UUID] = None
    position: Optional[PositionRef] = None
    issue_date: datetime
    expiration_date: datetime
    status: CertificateStatus
    notes: Optional[str] = None
    attachment_id: Optional[str] = None
    attachment_name: Optional[str] = None
    has_attachment: bool = False
    created_at: datetime
    updated_at: datetime


class CertificateDetail(CertificateResponse):
    revisions: list[RevisionResponse] = Field(default_factory=list)
