"""SMTP mailer tests — reminder rendering, unconfigured sender, delivery
and delivery failures (aiosmtplib patched out).
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import aiosmtplib

from certtracker.notifications.mailer import (
    REMINDER_SUBJECT,
    TEST_SUBJECT,
    SmtpMailSender,
    render_reminder,
    send_test_email,
)
from certtracker.notifications.schemas import CertificateSummary


def _summary(staff_member: str = "Ann Lee", cert_type: str = "First Aid") -> CertificateSummary:
    return CertificateSummary(
        staff_member=staff_member,
        cert_type=cert_type,
        expiration_date=datetime(2025, 4, 15, tzinfo=timezone.utc),
        days_until_expiry=12,
    )


def _configured_sender() -> SmtpMailSender:
    return SmtpMailSender(
        hostname="smtp.example.com",
        port=2525,
        username="apikey",
        password="secret",
        start_tls=False,
        from_email="noreply@example.com",
        from_name="Cert Desk",
    )


# ── Rendering ───────────────────────────────────────────────────────


class TestRenderReminder:
    def test_lists_every_certificate(self):
        html_body, text_body = render_reminder([_summary(), _summary("Bob Ray", "Forklift")])

        assert "Ann Lee" in html_body and "Bob Ray" in html_body
        assert "15 Apr 2025 (12 days)" in html_body
        assert "- Bob Ray: Forklift, expires 15 Apr 2025 (12 days)" in text_body

    def test_html_is_escaped(self):
        html_body, _ = render_reminder([_summary("<script>alert(1)</script>")])

        assert "<script>" not in html_body
        assert "&lt;script&gt;" in html_body


# ── Delivery ────────────────────────────────────────────────────────


class TestSmtpMailSender:
    def test_build_message_headers(self):
        message = _configured_sender().build_message("ann@example.com", "Hi", "<p>x</p>", "x")

        assert message["To"] == "ann@example.com"
        assert message["From"] == "Cert Desk <noreply@example.com>"
        assert message["Subject"] == "Hi"

    async def test_unconfigured_sender_never_connects(self):
        sender = SmtpMailSender(hostname="smtp.example.com", password="", from_email="")

        with patch("certtracker.notifications.mailer.aiosmtplib.send", new_callable=AsyncMock) as send:
            delivered = await sender("ann@example.com", [_summary()])

        assert delivered is False
        send.assert_not_awaited()

    async def test_reminder_is_sent_with_settings(self):
        sender = _configured_sender()

        with patch("certtracker.notifications.mailer.aiosmtplib.send", new_callable=AsyncMock) as send:
            delivered = await sender("ann@example.com", [_summary()])

        assert delivered is True
        send.assert_awaited_once()
        message = send.await_args.args[0]
        assert message["Subject"] == REMINDER_SUBJECT
        assert send.await_args.kwargs["hostname"] == "smtp.example.com"
        assert send.await_args.kwargs["port"] == 2525
        assert send.await_args.kwargs["start_tls"] is False

    async def test_smtp_error_is_reported_as_false(self):
        sender = _configured_sender()

        with patch(
            "certtracker.notifications.mailer.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=aiosmtplib.SMTPException("relay refused"),
        ):
            assert await sender("ann@example.com", [_summary()]) is False

    async def test_connection_error_is_reported_as_false(self):
        sender = _configured_sender()

        with patch(
            "certtracker.notifications.mailer.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=ConnectionRefusedError(),
        ):
            assert await sender("ann@example.com", [_summary()]) is False

    async def test_test_email_subject(self):
        sender = _configured_sender()

        with patch("certtracker.notifications.mailer.aiosmtplib.send", new_callable=AsyncMock) as send:
            assert await send_test_email(sender, "ops@example.com") is True

        assert send.await_args.args[0]["Subject"] == TEST_SUBJECT
