# gradebook/services/email_service.py
"""Outbound e-mail through the Brevo transactional API.

Sending is a side channel: callers schedule it on ``BackgroundTasks`` and a failure is
logged, never raised, so the mutation that triggered it still succeeds.
"""
import logging
from typing import Optional

import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)

BREVO_URL = "https://api.brevo.com/v3/smtp/email"


class EmailService:
    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.brevo_api_key

    async def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> bool:
        if not self.api_key:
            logger.warning(f"Email not sent to {to}: BREVO_API_KEY not configured")
            return False

        payload = {
            "sender": {"email": settings.email_from, "name": settings.email_from_name},
            "to": [{"email": to}],
            "subject": subject,
            "textContent": text,
        }
        if html:
            payload["htmlContent"] = html

        try:
            async with httpx.AsyncClient(timeout=settings.email_timeout_seconds) as client:
                response = await client.post(
                    BREVO_URL,
                    headers={"api-key": self.api_key, "Content-Type": "application/json"},
                    json=payload,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Email API error for {to}: {e.response.status_code} - {e.response.text}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Email delivery to {to} failed: {e}")
            return False

        logger.info(f"Email '{subject}' sent to {to}")
        return True

    async def send_credentials(self, to: str, name: str, email: str, password: str, role: str) -> bool:
        text = (
            f"Hello {name},\n\n"
            f"A GradeBook {role} account has been created for you.\n"
            f"Login: {email}\nTemporary password: {password}\n\n"
            f"Sign in at {settings.frontend_url} and change your password on first login."
        )
        return await self.send(to, "Your GradeBook account", text)

    async def send_contact_reply(self, to: str, name: str, original_subject: str, reply: str) -> bool:
        text = (
            f"Hello {name},\n\n"
            f"We have replied to your message \"{original_subject}\":\n\n{reply}\n\n"
            f"The GradeBook team"
        )
        return await self.send(to, f"Re: {original_subject}", text)


email_service = EmailService()
