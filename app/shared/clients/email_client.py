from __future__ import annotations

import logging
import smtplib
import uuid
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Dict, Any

from ...core.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the provider could not accept a message."""


class EmailClient:
    """Simple email client abstraction.

    - dev: logs instead of sending
    - smtp: delivers through the configured SMTP relay (blocking; callers run it in a thread)
    """

    def __init__(self, provider: Optional[str] = None) -> None:
        self.provider = provider or settings.email_provider

    @property
    def from_header(self) -> str:
        return f'"{settings.email_from_name}" <{settings.email_from_address}>'

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        *,
        text: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if self.provider == "dev":
            logger.info("[DEV EMAIL] to=%s subject=%s meta=%s", to, subject, meta)
            return {"ok": True, "provider": "dev", "message_id": f"dev-{uuid.uuid4().hex[:12]}"}
        if self.provider == "smtp":
            return self._send_smtp(to, subject, html, text)
        raise EmailDeliveryError(f"Email provider '{self.provider}' not implemented")

    def _build_message(self, to: str, subject: str, html: str, text: Optional[str]) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_header
        msg["To"] = to
        msg["Message-ID"] = f"<{uuid.uuid4().hex}@{settings.email_from_address.split('@')[-1]}>"
        if text:
            msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def _send_smtp(self, to: str, subject: str, html: str, text: Optional[str]) -> Dict[str, Any]:
        if not settings.smtp_host:
            raise EmailDeliveryError("SMTP host is not configured")

        msg = self._build_message(to, subject, html, text)
        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
                if settings.smtp_use_tls:
                    server.starttls()
                if settings.smtp_username and settings.smtp_password:
                    server.login(settings.smtp_username, settings.smtp_password)
                server.sendmail(settings.email_from_address, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(f"SMTP delivery to {to} failed: {e}") from e

        logger.info("Email sent via SMTP to %s", to)
        return {"ok": True, "provider": "smtp", "message_id": msg["Message-ID"]}
