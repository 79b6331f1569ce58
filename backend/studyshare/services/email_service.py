"""
StudyShare Backend — Email Service
====================================

What:  Sends transactional email (currently: password reset codes).
How:   smtplib runs in a worker thread (asyncio.to_thread) so the event loop
       stays free; transient SMTP/socket failures are retried by tenacity.
       With SMTP_HOST unset the message is logged instead of sent, which is
       how development and tests run.
"""

import asyncio
import html
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from tenacity import (
    RetryError,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from studyshare.config import settings
from studyshare.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)

# Failures worth another attempt; authentication and recipient errors are not
_TRANSIENT_SMTP_ERRORS = (
    smtplib.SMTPConnectError,
    smtplib.SMTPServerDisconnected,
    smtplib.SMTPDataError,
    ConnectionError,
    TimeoutError,
)


class EmailService:
    """Thin async wrapper around smtplib."""

    @property
    def enabled(self) -> bool:
        return bool(settings.smtp_host)

    def build_message(self, to: str, subject: str, html: str, text: Optional[str] = None) -> EmailMessage:
        """Plain-text part first (when given), HTML as the preferred alternative."""
        message = EmailMessage()
        message["From"] = settings.email_from
        message["To"] = to
        message["Subject"] = subject
        if text:
            message.set_content(text)
            message.add_alternative(html, subtype="html")
        else:
            message.set_content(html, subtype="html")
        return message

    async def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> None:
        """
        Deliver one email.

        Raises:
            EmailDeliveryError: SMTP failed (after retries for transient errors)
        """
        if not self.enabled:
            logger.info("SMTP not configured; email to %s not sent. Subject: %s", to, subject)
            logger.debug("Email body for %s:\n%s", to, text or html)
            return

        message = self.build_message(to, subject, html, text)
        try:
            await self._deliver(message)
        except (smtplib.SMTPException, OSError, RetryError) as e:
            logger.error("Email delivery to %s failed: %s", to, str(e))
            raise EmailDeliveryError(context={"error_type": type(e).__name__})

        logger.info("Email sent to %s (subject=%s)", to, subject)

    async def send_reset_code(self, to: str, name: str, code: str) -> None:
        ttl = settings.reset_code_ttl_minutes
        html_body = (
            "<h1>Password Reset Request</h1>"
            f"<p>Hello {html.escape(name)}, you requested a password reset for your StudyShare account.</p>"
            f"<p>Your password reset code is: <strong>{code}</strong></p>"
            f"<p>This code is valid for {ttl} minutes.</p>"
            "<p>If you did not request a password reset, please ignore this email.</p>"
        )
        text_body = (
            f"Hello {name},\n\n"
            f"Your StudyShare password reset code is: {code}\n\n"
            f"This code is valid for {ttl} minutes. "
            "If you did not request a password reset, please ignore this email.\n"
        )
        await self.send(to, "StudyShare Password Reset", html_body, text_body)

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_SMTP_ERRORS),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _deliver(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._send_sync, message)

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if settings.smtp_username and settings.smtp_password:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(message)


# ── Singleton Instance ────────────────────────────────────────────────────
email_service = EmailService()
