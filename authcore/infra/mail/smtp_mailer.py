"""SMTP adapter for the :class:`~authcore.services._shared.ports.mailer.Mailer` port."""

from __future__ import annotations

import logging
import smtplib
import ssl
from collections.abc import Mapping
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any
from urllib.parse import urlencode

from authcore.services._shared.errors import MailDeliveryError

log = logging.getLogger(__name__)


def redact_email(email: str) -> str:
    """Keep the first two characters of the local part, e.g. ``jo***@example.com``."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


@dataclass(slots=True)
class SMTPMailer:
    """
    Send verification and password reset emails over SMTP.

    Links are built from ``frontend_url``. Without ``host`` (local development,
    tests) messages are not sent; a redacted ``mail.dev_mode`` line is logged
    instead so the flow can still be exercised end-to-end.

    :param host: SMTP server; ``None`` enables dev mode.
    :param port: SMTP port (587 for STARTTLS, 465 for implicit TLS).
    :param username: Optional login user.
    :param password: Optional login password.
    :param use_tls: STARTTLS on a plain connection when ``True``; implicit TLS otherwise.
    :param sender: ``From`` address; defaults to ``username``.
    :param frontend_url: Base URL of the web client.
    :param timeout: Socket timeout in seconds.
    """

    host: str | None = None
    port: int = 587
    username: str | None = None
    password: str | None = None
    use_tls: bool = True
    sender: str | None = None
    frontend_url: str = "http://localhost:5173"
    timeout: float = 30.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> SMTPMailer:
        return cls(
            host=config.get("MAIL_HOST") or None,
            port=int(config.get("MAIL_PORT", 587)),
            username=config.get("MAIL_USER"),
            password=config.get("MAIL_PASSWORD"),
            use_tls=bool(config.get("MAIL_USE_TLS", True)),
            sender=config.get("MAIL_FROM") or config.get("MAIL_USER"),
            frontend_url=config.get("FRONTEND_URL", "http://localhost:5173"),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.sender)

    def link(self, path: str, token: str) -> str:
        return f"{self.frontend_url.rstrip('/')}/{path.lstrip('/')}?{urlencode({'token': token})}"

    # -------------------- Mailer port --------------------

    def send_verification_email(self, to: str, token: str) -> None:
        url = self.link("/verify-email", token)
        self._send(
            to,
            "Verify your email address",
            text=f"Confirm your email address by opening this link:\n\n{url}\n",
            html=f'<p>Confirm your email address:</p><p><a href="{url}">Verify email</a></p>',
        )

    def send_password_reset_email(self, to: str, token: str) -> None:
        url = self.link("/reset-password", token)
        self._send(
            to,
            "Reset your password",
            text=(
                "We received a request to reset your password. Open this link to "
                f"choose a new one:\n\n{url}\n\nIf you did not ask for this, ignore this email.\n"
            ),
            html=(
                "<p>We received a request to reset your password.</p>"
                f'<p><a href="{url}">Choose a new password</a></p>'
                "<p>If you did not ask for this, ignore this email.</p>"
            ),
        )

    # -------------------- transport --------------------

    def _send(self, to: str, subject: str, *, text: str, html: str) -> None:
        if not self.is_configured:
            log.info("mail.dev_mode to=%s subject=%s", redact_email(to), subject)
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = str(self.sender)
        msg["To"] = to
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        context = ssl.create_default_context()
        try:
            if self.use_tls:
                with smtplib.SMTP(str(self.host), self.port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    self._login(server)
                    server.sendmail(str(self.sender), [to], msg.as_string())
            else:
                with smtplib.SMTP_SSL(
                    str(self.host), self.port, context=context, timeout=self.timeout
                ) as server:
                    self._login(server)
                    server.sendmail(str(self.sender), [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            log.error(
                "mail.send_failed to=%s host=%s error=%s",
                redact_email(to),
                self.host,
                type(exc).__name__,
            )
            raise MailDeliveryError(f"Could not deliver '{subject}'") from exc

        log.info("mail.sent to=%s subject=%s", redact_email(to), subject)

    def _login(self, server: smtplib.SMTP) -> None:
        if self.username and self.password:
            server.login(self.username, self.password)
