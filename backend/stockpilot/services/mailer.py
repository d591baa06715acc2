# Overview: Outbound invitation email; SMTP in production, log-only when mail is not configured.

from __future__ import annotations

import smtplib
from contextlib import contextmanager
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from flask import current_app


class InviteMailer(Protocol):
    def send_invitation(self, *, email: str, organization_id: int, organization_name: str) -> bool:
        ...


def _invite_body(*, organization_name: str, organization_id: int, signup_url: str) -> str:
    return (
        f"You have been invited to join {organization_name} on Stockpilot.\n\n"
        f"Create your employee account at {signup_url} and choose "
        f"\"{organization_name}\" (organization #{organization_id}).\n"
    )


class SmtpInviteMailer:
    """SMTP client for invitation emails."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str | None,
        password: str | None,
        sender: str,
        signup_url: str,
        use_ssl: bool = False,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.signup_url = signup_url
        self.use_ssl = use_ssl
        self.timeout = timeout

    @contextmanager
    def _connection(self):
        """Context-managed SMTP connection."""
        if self.use_ssl:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if not self.use_ssl:
                server.starttls()
            if self.username:
                server.login(self.username, self.password or "")
            yield server
        finally:
            try:
                server.quit()
            except smtplib.SMTPException as e:
                current_app.logger.warning("Error closing SMTP connection: %s", e)

    def _build_message(self, *, recipient: str, subject: str, text_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.sender
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain"))
        return msg

    def send_invitation(self, *, email: str, organization_id: int, organization_name: str) -> bool:
        msg = self._build_message(
            recipient=email,
            subject=f"You're invited to {organization_name} on Stockpilot",
            text_body=_invite_body(
                organization_name=organization_name,
                organization_id=organization_id,
                signup_url=self.signup_url,
            ),
        )
        try:
            with self._connection() as server:
                server.sendmail(self.sender, [email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            current_app.logger.error("Failed to send invitation to %s: %s", email, e)
            return False

        current_app.logger.info("Invitation email sent to %s", email)
        return True


class LoggingInviteMailer:
    """Used when MAIL_SERVER is unset. Nothing is delivered."""

    def send_invitation(self, *, email: str, organization_id: int, organization_name: str) -> bool:
        current_app.logger.info(
            "MAIL_SERVER not configured; invitation for %s to org %s (%s) was not emailed",
            email, organization_id, organization_name,
        )
        return False


def get_invite_mailer() -> InviteMailer:
    mailer = current_app.extensions.get("stockpilot.invite_mailer")
    if mailer is not None:
        return mailer

    cfg = current_app.config
    if cfg.get("MAIL_SERVER"):
        mailer = SmtpInviteMailer(
            host=cfg["MAIL_SERVER"],
            port=int(cfg.get("MAIL_PORT", 587)),
            username=cfg.get("MAIL_USERNAME"),
            password=cfg.get("MAIL_PASSWORD"),
            sender=cfg.get("MAIL_DEFAULT_SENDER", "no-reply@stockpilot.local"),
            signup_url=cfg.get("INVITE_SIGNUP_URL", ""),
            use_ssl=bool(cfg.get("MAIL_USE_SSL")),
        )
    else:
        mailer = LoggingInviteMailer()
    current_app.extensions["stockpilot.invite_mailer"] = mailer
    return mailer
