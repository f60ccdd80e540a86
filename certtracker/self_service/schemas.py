"""Self-service schemas — the caller's certificates and compliance counts."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from certtracker.certificates.schemas import CertificateResponse
from certtracker.workforce.schemas import PositionBrief


class EmployeeSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    email: Optional[str] = None
    positions: list[PositionBrief] = Field(default_factory=list)


class MyCertificate(CertificateResponse):
    """Certificate with the expiry figures an employee sees on their own list."""

    days_until_expiration: int
    expiring_soon: bool = False


class MyCertificatesResponse(BaseModel):
    employee: EmployeeSummary
    certificates: list[MyCertificate]


class MyComplianceStats(BaseModel):
    total: int = 0
    active: int = 0
    expiring_soon: int = 0
    expired: int = 0


class MyComplianceResponse(BaseModel):
    employee: EmployeeSummary
    stats: MyComplianceStats
