"""SMTP mail delivery for expiry reminders (aiosmtplib)."""

from __future__ import annotations

import html
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib

from certtracker.common.constants import DATE_FORMAT
from certtracker.config import settings
from certtracker.notifications.schemas import CertificateSummary

logger = logging.getLogger(__name__)

REMINDER_SUBJECT = "Certificate Expiration Reminder"
TEST_SUBJECT = "Test Email from Certificate Tracker"


# ── Rendering ───────────────────────────────────────────────────────

def _expires_label(summary: CertificateSummary) -> str:
    label = summary.expiration_date.strftime(DATE_FORMAT)
    if summary.days_until_expiry is not None:
        label += f" ({summary.days_until_expiry} days)"
    return label


def render_reminder(summaries: list[CertificateSummary]) -> tuple[str, str]:
    """Return ``(html, text)`` bodies listing *summaries*."""
    rows = "\n".join(
        "<tr>"
        f"<td>{html.escape(s.staff_member)}</td>"
        f"<td>{html.escape(s.cert_type)}</td>"
        f"<td>{html.escape(_expires_label(s))}</td>"
        "</tr>"
        for s in summaries
    )
    html_body = (
        "<h2>Certificate Expiration Reminder</h2>"
        "<p>The following certificates will expire soon:</p>"
        "<table border=\"1\" cellpadding=\"6\" cellspacing=\"0\">"
        "<tr><th>Staff Member</th><th>Certificate</th><th>Expires</th></tr>"
        f"{rows}"
        "</table>"
        "<p>Please renew them before they expire.</p>"
    )
    if settings.APP_URL:
        html_body += f'<p><a href="{html.escape(settings.APP_URL)}">Open Certificate Tracker</a></p>'

    lines = ["The following certificates will expire soon:", ""]
    lines += [f"- {s.staff_member}: {s.cert_type}, expires {_expires_label(s)}" for s in summaries]
    lines += ["", "Please renew them before they expire."]
    return html_body, "\n".join(lines)


# ── Delivery ────────────────────────────────────────────────────────

class SmtpMailSender:
    """Async callable ``(to, summaries) -> bool`` backed by SMTP.

    Delivery problems are logged and reported as ``False``; a sender that is
    not configured never attempts a connection.
    """

    def __init__(
        self,
        *,
        hostname: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        start_tls: Optional[bool] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        self.hostname = hostname or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.username = username if username is not None else settings.SMTP_USER
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.start_tls = settings.SMTP_START_TLS if start_tls is None else start_tls
        self.from_email = from_email or settings.EMAIL_FROM
        self.from_name = from_name or settings.EMAIL_FROM_NAME

    @property
    def is_configured(self) -> bool:
        return bool(self.hostname and self.password and self.from_email)

    def build_message(
        self, to_email: str, subject: str, html_body: str, text_body: str,
    ) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email
        message["Subject"] = subject
        message.attach(MIMEText(text_body, "plain"))
        message.attach(MIMEText(html_body, "html"))
        return message

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        if not self.is_configured:
            logger.warning("SMTP not configured, not sending '%s' to %s", subject, to_email)
            return False
        message = self.build_message(to_email, subject, html_body, text_body)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.hostname,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.start_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send '%s' to %s: %s", subject, to_email, exc)
            return False
        logger.info("Sent '%s' to %s", subject, to_email)
        return True

    async def __call__(self, to_email: str, summaries: list[CertificateSummary]) -> bool:
        html_body, text_body = render_reminder(summaries)
        return await self.send(to_email, REMINDER_SUBJECT, html_body, text_body)


async def send_test_email(sender: SmtpMailSender, to_email: str) -> bool:
    """Send a one-line message to confirm the SMTP settings work."""
    text_body = "This is a test email from Certificate Tracker. E-mail delivery is configured correctly."
    html_body = f"<p>{html.escape(text_body)}</p>"
    return await sender.send(to_email, TEST_SUBJECT, html_body, text_body)


def get_mail_sender() -> SmtpMailSender:
    """FastAPI dependency: SMTP sender built from settings."""
    return SmtpMailSender()
