"""Outbound email through the Resend HTTP API."""
import asyncio
import logging
from typing import Optional, Sequence, Union

import aiohttp
from aiohttp import ClientError, ClientTimeout

from edify.config import get_settings

logger = logging.getLogger(__name__)


class EmailService:
    """
    Thin client for the email provider.

    Sending is best effort: failures are logged and reported through the
    return value, never raised, so callers can treat notifications as
    optional side effects.
    """

    def __init__(self):
        self.settings = get_settings()
        self.timeout = ClientTimeout(total=self.settings.email_timeout_seconds)

    async def send_email(
            self,
            to: Union[str, Sequence[str]],
            subject: str,
            html: str,
            sender: Optional[str] = None,
    ) -> bool:
        """Send an HTML email. Returns True when the provider accepted it."""
        recipients = [to] if isinstance(to, str) else list(to)
        sender = sender or self.settings.moderation_email_from
        logger.info(f"Attempting to send email to={recipients} subject={subject!r}")

        if not self.settings.resend_api_key:
            logger.error("RESEND_API_KEY is not configured; email not sent")
            return False

        payload = {"from": sender, "to": recipients, "subject": subject, "html": html}
        headers = {"Authorization": f"Bearer {self.settings.resend_api_key}"}

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.settings.email_api_url, json=payload, headers=headers) as response:
                    if response.status >= 400:
                        error_text = await response.text()
                        logger.error(f"Email API error {response.status}: {error_text}")
                        return False
                    data = await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.error(f"Email API timeout sending {subject!r}")
            return False
        except ClientError as e:
            logger.error(f"Email API client error sending {subject!r}: {e}")
            return False

        logger.info(f"Email sent successfully: {data}")
        return True


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
