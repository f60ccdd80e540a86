"""Notification endpoints — manual send, single reminder, preview, scheduled trigger, test e-mail."""

import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from certtracker.auth.dependencies import require_admin, verify_cron_secret
from certtracker.auth.models import User
from certtracker.common.rate_limit import CRON_LIMIT, limiter
from certtracker.config import settings
from certtracker.database import get_db
from certtracker.notifications.mailer import SmtpMailSender, get_mail_sender, send_test_email
from certtracker.notifications.schemas import (
    CronResponse,
    PreviewResponse,
    SendNotificationsRequest,
    SendNotificationsResponse,
    SendTestEmailRequest,
    SingleReminderResponse,
)
from certtracker.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── POST /send — manual run ─────────────────────────────────────────

@router.post("/send", response_model=SendNotificationsResponse)
async def send_notifications(
    body: SendNotificationsRequest,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    mail_sender: SmtpMailSender = Depends(get_mail_sender),
):
    result = await NotificationService.send_reminders(db, body.days_threshold, mail_sender)
    return SendNotificationsResponse(
        message=(
            f"Sent {result.emails_sent} e-mail(s) for certificates expiring "
            f"within {body.days_threshold} days"
        ),
        stats=result,
    )


# ── POST /send-reminder/{id} — one certificate ─────────────────────

@router.post("/send-reminder/{certificate_id}", response_model=SingleReminderResponse)
async def send_single_reminder(
    certificate_id: uuid.UUID,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    mail_sender: SmtpMailSender = Depends(get_mail_sender),
):
    email = await NotificationService.send_single_reminder(db, certificate_id, mail_sender)
    return SingleReminderResponse(
        message="Reminder sent successfully",
        email=email,
        certificate_id=certificate_id,
    )


# ── GET /preview — what a run would send ────────────────────────────

@router.get("/preview", response_model=PreviewResponse)
async def preview_notifications(
    days: int = Query(default=settings.NOTIFICATION_DEFAULT_THRESHOLD_DAYS, ge=1, le=3650),
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    items = await NotificationService.preview(db, days)
    return PreviewResponse(count=len(items), days_threshold=days, certificates=items)


# ── GET /cron — scheduled trigger ───────────────────────────────────

@router.get("/cron", response_model=CronResponse, dependencies=[Depends(verify_cron_secret)])
@limiter.limit(CRON_LIMIT)
async def cron_notifications(
    request: Request,
    db: AsyncSession = Depends(get_db),
    mail_sender: SmtpMailSender = Depends(get_mail_sender),
):
    """Called by an external scheduler. Threshold is fixed; no user session needed."""
    result = await NotificationService.run_scheduled(db, mail_sender)
    return CronResponse(
        message="Notifications sent successfully",
        timestamp=result.timestamp,
        stats=result,
    )


# ── POST /test — SMTP configuration check ───────────────────────────

@router.post("/test")
async def test_email(
    body: SendTestEmailRequest,
    user: User = Depends(require_admin),
    mail_sender: SmtpMailSender = Depends(get_mail_sender),
):
    delivered = await send_test_email(mail_sender, body.email)
    return {
        "success": delivered,
        "message": (
            f"Test email sent to {body.email}"
            if delivered
            else "Test email could not be sent; check the SMTP settings"
        ),
    }
