"""Notification service — run the expiry reminder dispatcher against the database.

Delivery problems are counted in the result. Anything else that stops a
run (loading records, selection, grouping) is logged and re-raised as
``NotificationRunError`` so the caller gets a 500 problem response instead
of a partial result.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from certtracker.certificates.service import CertificateService, to_record
from certtracker.common.constants import SCHEDULED_THRESHOLD_DAYS
from certtracker.common.exceptions import AppException, BadRequestException, NotificationRunError
from certtracker.compliance.service import ComplianceService
from certtracker.notifications import dispatcher
from certtracker.notifications.dispatcher import MailSender
from certtracker.notifications.schemas import NotificationResult, PreviewItem

logger = logging.getLogger(__name__)


class NotificationService:
    """Manual, scheduled and preview runs of the expiry reminders."""

    @staticmethod
    async def send_reminders(
        db: AsyncSession,
        threshold_days: int,
        mail_sender: MailSender,
        *,
        now: Optional[datetime] = None,
    ) -> NotificationResult:
        now = now or datetime.now(timezone.utc)
        logger.info("Starting expiry reminder run (threshold %d days)", threshold_days)
        try:
            certificates = await ComplianceService.load_certificates(db, now)
            employees = await ComplianceService.load_employees(db)
            return await dispatcher.dispatch(
                certificates, employees, threshold_days, now, mail_sender,
            )
        except AppException:
            raise
        except Exception as exc:
            logger.exception("Expiry reminder run aborted")
            raise NotificationRunError(f"Notification run failed: {exc}") from exc

    @staticmethod
    async def run_scheduled(
        db: AsyncSession,
        mail_sender: MailSender,
        *,
        now: Optional[datetime] = None,
    ) -> NotificationResult:
        """The cron run always uses the fixed scheduled threshold."""
        return await NotificationService.send_reminders(
            db, SCHEDULED_THRESHOLD_DAYS, mail_sender, now=now,
        )

    @staticmethod
    async def send_single_reminder(
        db: AsyncSession,
        certificate_id: uuid.UUID,
        mail_sender: MailSender,
        *,
        now: Optional[datetime] = None,
    ) -> str:
        """Remind the owner of one certificate, whatever its expiry. Returns the address used.

        Unlike a batch run, a failed send is an error here: it raises
        ``NotificationRunError``.
        """
        now = now or datetime.now(timezone.utc)
        cert = to_record(await CertificateService.get_certificate(db, certificate_id), now)
        employees = await ComplianceService.load_employees(db)

        email = dispatcher.recipient_for(cert.staff_member, employees)
        if not email:
            raise BadRequestException(f"No e-mail address on file for {cert.staff_member}.")

        try:
            delivered = await mail_sender(email, [dispatcher.summarize(cert, now)])
        except Exception as exc:
            logger.exception("Reminder for certificate %s to %s raised", certificate_id, email)
            raise NotificationRunError(f"Failed to send reminder to {email}: {exc}") from exc
        if not delivered:
            logger.warning("Reminder for certificate %s to %s not delivered", certificate_id, email)
            raise NotificationRunError(f"Failed to send reminder to {email}.")

        logger.info("Reminder for %s (%s) sent to %s", cert.staff_member, cert.cert_type, email)
        return email

    @staticmethod
    async def preview(
        db: AsyncSession,
        threshold_days: int,
        *,
        now: Optional[datetime] = None,
    ) -> list[PreviewItem]:
        now = now or datetime.now(timezone.utc)
        certificates = await ComplianceService.load_certificates(db, now)
        return dispatcher.preview(certificates, threshold_days, now)
