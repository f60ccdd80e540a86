"""Notification schemas — expiry reminders, previews, run results."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from certtracker.config import settings


# ── What a recipient is told about ──────────────────────────────────

class CertificateSummary(BaseModel):
    """One expiring certificate, as rendered into a reminder e-mail."""

    staff_member: str
    cert_type: str
    expiration_date: datetime
    days_until_expiry: Optional[int] = None


class PreviewItem(BaseModel):
    id: Optional[str] = None
    staff_member: str
    cert_type: str
    expiration_date: datetime
    days_until_expiry: int


# ── Run results ─────────────────────────────────────────────────────

class NotificationResult(BaseModel):
    """Outcome counters of one dispatch run."""

    emails_sent: int = 0
    emails_failed: int = 0
    no_email_count: int = Field(
        0, description="Selected certificates whose owner has no usable e-mail",
    )
    certificates_found: int = 0
    recipients: int = 0
    threshold_days: int
    timestamp: datetime


# ── Requests / responses ────────────────────────────────────────────

class SendNotificationsRequest(BaseModel):
    days_threshold: int = Field(default=settings.NOTIFICATION_DEFAULT_THRESHOLD_DAYS, ge=1, le=3650)


class SendNotificationsResponse(BaseModel):
    success: bool = True
    message: str
    stats: NotificationResult


class PreviewResponse(BaseModel):
    success: bool = True
    count: int
    days_threshold: int
    certificates: list[PreviewItem]


class CronResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: datetime
    stats: NotificationResult


class SendTestEmailRequest(BaseModel):
    email: EmailStr


class SingleReminderResponse(BaseModel):
    success: bool = True
    message: str
    email: str
    certificate_id: uuid.UUID
