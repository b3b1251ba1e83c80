"""
Transactional mail (registration confirmation, password reset).

Sending is fire-and-forget: routers schedule :meth:`Mailer.send` as a
background task, failures are logged and never reach the HTTP caller, and
nothing is retried.
"""
import logging
from email.message import EmailMessage

import aiosmtplib

from rebbit.config import Settings

logger = logging.getLogger(__name__)


class Mailer:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.mail_sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    async def send(self, to: str, subject: str, body: str) -> None:
        if not self.settings.MAIL_ENABLED:
            logger.info("Mail disabled, dropping %r to %s", subject, to)
            return
        message = self.build_message(to, subject, body)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.settings.MAIL_HOST,
                port=self.settings.MAIL_PORT,
                username=self.settings.MAIL_USERNAME or None,
                password=self.settings.MAIL_PASSWORD or None,
                start_tls=True,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.warning("Mail to %s failed: %s", to, exc)
            return
        logger.info("Mail %r sent to %s", subject, to)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def send_registration(self, to: str, pseudo: str, name: str | None, surname: str | None) -> None:
        greeting = " ".join(part for part in (name, surname) if part) or pseudo
        body = (
            f"Hello {greeting},\n\n"
            "Thank you for registering on Rebbit.\n\n"
            f"Your pseudo: {pseudo}\n"
            f"Your email: {to}\n\n"
            "Regards,\nThe Rebbit team"
        )
        await self.send(to, "Registration confirmation", body)

    async def send_password_reset(self, to: str, token: str) -> None:
        url = f"{self.settings.FRONTEND_URL.rstrip('/')}/reset-password?token={token}"
        body = (
            "You asked to reset your password. "
            f"Follow this link to choose a new one:\n\n{url}"
        )
        await self.send(to, "Password reset", body)