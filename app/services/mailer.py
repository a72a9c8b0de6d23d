"""
Outbound email: welcome, organization invitation, and password reset messages.
"""

from __future__ import annotations

import asyncio
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional, Protocol

import structlog

from app.core.config import Settings

log = structlog.get_logger()


class Mailer(Protocol):
    async def send_welcome_email(
        self, to: str, name: Optional[str], invitation_token: str
    ) -> None: ...

    async def send_organization_user_welcome_email(
        self, to: str, name: Optional[str], sender: Optional[str], invitation_token: str
    ) -> None: ...

    async def send_password_reset_email(self, to: str, token: str) -> None: ...


class _TemplateMailer(ABC):
    """Builds the messages; subclasses decide how to deliver them."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _link(self, path: str) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}/{path}"

    @abstractmethod
    async def deliver(self, to: str, subject: str, body: str) -> None:
        """Send one rendered message."""

    async def send_welcome_email(
        self, to: str, name: Optional[str], invitation_token: str
    ) -> None:
        link = self._link(f"invitations/{invitation_token}")
        body = (
            f"Hi {name or ''},\n\n"
            "Please use the link below to set up your account and get started.\n\n"
            f"{link}\n"
        )
        await self.deliver(to, "Set up your account", body)

    async def send_organization_user_welcome_email(
        self, to: str, name: Optional[str], sender: Optional[str], invitation_token: str
    ) -> None:
        link = self._link(f"organization-invitations/{invitation_token}")
        body = (
            f"Hi {name or ''},\n\n"
            f"{sender or 'A teammate'} has invited you to join their workspace.\n\n"
            f"{link}\n"
        )
        await self.deliver(to, "You have been invited to a workspace", body)

    async def send_password_reset_email(self, to: str, token: str) -> None:
        link = self._link(f"reset-password/{token}")
        body = (
            "Please use the link below to reset your password.\n\n"
            f"{link}\n"
        )
        await self.deliver(to, "Password reset instructions", body)


class LogMailer(_TemplateMailer):
    """Writes messages to the log instead of sending them (local development)."""

    async def deliver(self, to: str, subject: str, body: str) -> None:
        log.info("mail.logged", to=to, subject=subject, body=body)


class SMTPMailer(_TemplateMailer):
    """Sends messages through an SMTP relay."""

    def _send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port) as smtp:
            if self.settings.smtp_starttls:
                smtp.starttls()
            if self.settings.smtp_username:
                smtp.login(self.settings.smtp_username, self.settings.smtp_password)
            smtp.send_message(message)

    async def deliver(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.settings.mail_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        await asyncio.to_thread(self._send, message)
        log.info("mail.sent", to=to, subject=subject)


def build_mailer(settings: Settings) -> Mailer:
    if settings.mail_enabled:
        return SMTPMailer(settings)
    return LogMailer(settings)
