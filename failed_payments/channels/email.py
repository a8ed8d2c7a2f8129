"""Email alert channel: sends one message per failed payment via SMTP.

Uses standard SMTP with STARTTLS (Gmail app password by default).
Credentials come from Settings:
- GMAIL_USER, GMAIL_APP_PASSWORD, SMTP_HOST, SMTP_PORT, ALERT_EMAIL

Security: password never logged.
"""

from __future__ import annotations

import asyncio
import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from failed_payments.models import FailureRecord, SendResult

logger = logging.getLogger(__name__)

ALERT_SUBJECT = "🚨 Stripe Payment Failed Alert"
_FOOTER = "This alert was generated automatically by your Stripe Failed Payments Monitor."


def alert_lines(record: FailureRecord) -> list[tuple[str, str]]:
    """Label/value pairs shown in the alert, in display order."""
    return [
        ("Customer", record.display_email),
        ("Amount", record.display_amount),
        ("Failure Reason", record.failure_reason),
        ("Payment ID", record.payment_id),
        ("Time", record.timestamp),
        ("Customer ID", record.display_customer_id),
    ]


class EmailNotifier:
    """Alert email channel via SMTP."""

    def __init__(
        self,
        channel_id: str = "email",
        recipient: str | None = None,
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        timeout: float = 15.0,
    ):
        self._channel_id = channel_id
        self._host = smtp_host
        self._port = smtp_port
        self._user = smtp_user
        self._password = smtp_password
        self._recipient = recipient or smtp_user
        self._timeout = timeout

    @property
    def channel_id(self) -> str:
        return self._channel_id

    @property
    def is_configured(self) -> bool:
        return bool(self._host and self._user and self._password and self._recipient)

    def format_message(self, record: FailureRecord) -> MIMEMultipart:
        """Format the alert as a plain-text + HTML MIME message."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = ALERT_SUBJECT
        msg["From"] = self._user
        msg["To"] = self._recipient

        lines = alert_lines(record)

        text_body = "Payment Failure Alert\n\n"
        text_body += "\n".join(f"{label}: {value}" for label, value in lines)
        text_body += f"\n\n{_FOOTER}\n"
        msg.attach(MIMEText(text_body, "plain", "utf-8"))

        rows = "\n".join(
            f"<p><strong>{label}:</strong> {html.escape(str(value))}</p>"
            for label, value in lines
        )
        html_body = f"""
        <h2>Payment Failure Alert</h2>
        {rows}
        <hr>
        <p>{_FOOTER}</p>
        """
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        return msg

    def _deliver(self, formatted: MIMEMultipart) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            server.starttls()
            server.login(self._user, self._password)
            server.send_message(formatted)

    def _probe(self) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            server.starttls()
            server.login(self._user, self._password)

    async def send(self, record: FailureRecord) -> SendResult:
        """Send the alert for one record. Never raises."""
        if not self.is_configured:
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error="Email not configured (missing GMAIL_USER/GMAIL_APP_PASSWORD)",
            )

        try:
            formatted = self.format_message(record)
            await asyncio.to_thread(self._deliver, formatted)
            return SendResult(success=True, channel_id=self._channel_id)
        except smtplib.SMTPException as e:
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error=f"SMTP error: {e}",
            )
        except Exception as e:
            logger.debug("Email delivery error", exc_info=True)
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error=str(e),
            )

    async def verify(self) -> bool:
        """Check that the SMTP server accepts our credentials."""
        if not self.is_configured:
            return False
        try:
            await asyncio.to_thread(self._probe)
            return True
        except Exception:
            logger.warning("SMTP verification failed", exc_info=True)
            return False
