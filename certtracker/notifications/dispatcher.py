"""Expiration reminder dispatcher.

Selects ACTIVE certificates expiring within a threshold, groups them by the
owning employee's e-mail address and hands each recipient's list to an
injected mail sender exactly once per run.

Failure handling:

* a certificate whose owner cannot be resolved to a non-empty e-mail is
  counted in ``no_email_count`` and not sent;
* a send that returns ``False`` or raises is counted in ``emails_failed``
  and the run moves on to the next recipient;
* anything that goes wrong while selecting or grouping propagates, so the
  caller never sees a partial result.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from certtracker.common.refs import resolve_id
from certtracker.compliance.engine import as_utc, days_until, is_expiring_within
from certtracker.compliance.schemas import CertificateRecord, EmployeeRecord
from certtracker.notifications.schemas import (
    CertificateSummary,
    NotificationResult,
    PreviewItem,
)

logger = logging.getLogger(__name__)

# (recipient address, that recipient's expiring certificates) -> delivered?
MailSender = Callable[[str, list[CertificateSummary]], Awaitable[bool]]


@dataclass
class RecipientBatch:
    """Everything one recipient will be told about in a single e-mail."""

    email: str
    certificates: list[CertificateRecord] = field(default_factory=list)


# ── Selection ───────────────────────────────────────────────────────

def select_expiring(
    certificates: Sequence[CertificateRecord],
    threshold_days: int,
    now: datetime,
) -> list[CertificateRecord]:
    """ACTIVE certificates with ``now < expiration_date <= now + threshold_days``."""
    if threshold_days < 1:
        raise ValueError(f"threshold_days must be a positive integer, got {threshold_days!r}")
    return [cert for cert in certificates if is_expiring_within(cert, now, threshold_days)]


def preview(
    certificates: Sequence[CertificateRecord],
    threshold_days: int,
    now: datetime,
) -> list[PreviewItem]:
    """What a dispatch run would cover, soonest expiry first. Sends nothing."""
    selected = sorted(
        select_expiring(certificates, threshold_days, now),
        key=lambda cert: as_utc(cert.expiration_date),
    )
    return [
        PreviewItem(
            id=resolve_id(cert.id),
            staff_member=cert.staff_member,
            cert_type=cert.cert_type,
            expiration_date=cert.expiration_date,
            days_until_expiry=days_until(cert.expiration_date, now),
        )
        for cert in selected
    ]


# ── Grouping ────────────────────────────────────────────────────────

def _email_directory(employees: Sequence[EmployeeRecord]) -> dict[str, Optional[str]]:
    """Employee name → e-mail. The first record with a given name wins."""
    directory: dict[str, Optional[str]] = {}
    for emp in employees:
        directory.setdefault(emp.name, (emp.email or "").strip() or None)
    return directory


def recipient_for(staff_member: str, employees: Sequence[EmployeeRecord]) -> Optional[str]:
    """The address a reminder about *staff_member*'s certificates goes to."""
    return _email_directory(employees).get(staff_member)


def summarize(cert: CertificateRecord, now: datetime) -> CertificateSummary:
    return CertificateSummary(
        staff_member=cert.staff_member,
        cert_type=cert.cert_type,
        expiration_date=cert.expiration_date,
        days_until_expiry=days_until(cert.expiration_date, now),
    )


def group_by_recipient(
    selected: Sequence[CertificateRecord],
    employees: Sequence[EmployeeRecord],
) -> tuple[list[RecipientBatch], list[CertificateRecord]]:
    """Split *selected* into per-recipient batches and unreachable certificates.

    Recipients are keyed case-insensitively and keep first-seen order.
    """
    directory = _email_directory(employees)
    batches: dict[str, RecipientBatch] = {}
    unreachable: list[CertificateRecord] = []

    for cert in selected:
        email = directory.get(cert.staff_member)
        if not email:
            unreachable.append(cert)
            continue
        batch = batches.setdefault(email.lower(), RecipientBatch(email=email))
        batch.certificates.append(cert)

    return list(batches.values()), unreachable


def _summaries(batch: RecipientBatch, now: datetime) -> list[CertificateSummary]:
    ordered = sorted(batch.certificates, key=lambda cert: as_utc(cert.expiration_date))
    return [summarize(cert, now) for cert in ordered]


# ── Dispatch ────────────────────────────────────────────────────────

async def dispatch(
    certificates: Sequence[CertificateRecord],
    employees: Sequence[EmployeeRecord],
    threshold_days: int,
    now: datetime,
    mail_sender: MailSender,
) -> NotificationResult:
    """Send one reminder per recipient and return the run's counters."""
    selected = select_expiring(certificates, threshold_days, now)
    batches, unreachable = group_by_recipient(selected, employees)

    for cert in unreachable:
        logger.info(
            "No e-mail on file for %s (%s), skipping", cert.staff_member, cert.cert_type,
        )

    result = NotificationResult(
        no_email_count=len(unreachable),
        certificates_found=len(selected),
        recipients=len(batches),
        threshold_days=threshold_days,
        timestamp=now,
    )

    for batch in batches:
        summaries = _summaries(batch, now)
        try:
            delivered = await mail_sender(batch.email, summaries)
        except Exception:
            logger.exception("Reminder to %s raised; counting as failed", batch.email)
            delivered = False

        if delivered:
            result.emails_sent += 1
        else:
            result.emails_failed += 1
            logger.warning(
                "Reminder to %s not delivered (%d certificate(s))",
                batch.email, len(summaries),
            )

    logger.info(
        "Expiry reminders (threshold %d days): %d certificate(s), sent=%d failed=%d no_email=%d",
        threshold_days,
        result.certificates_found,
        result.emails_sent,
        result.emails_failed,
        result.no_email_count,
    )
    return result
