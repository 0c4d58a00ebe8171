"""Email delivery through Resend"""
import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Optional, List, Union

import resend

logger = logging.getLogger(__name__)


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


class EmailService:
    """Sends emails with Resend; without an API key emails are only logged"""

    def __init__(self, api_key: str, from_email: str):
        self.from_email = from_email

        if not api_key:
            logger.warning("RESEND_API_KEY not configured. Emails will not be sent.")
            self.resend_configured = False
        else:
            resend.api_key = api_key
            self.resend_configured = True
            logger.info(f"EmailService (Resend) initialized with from: {self.from_email}")

    def build_params(
        self,
        to_emails: List[str],
        subject: str,
        text_content: str,
        html_content: Optional[str] = None,
        attachments: Optional[List[EmailAttachment]] = None
    ) -> dict:
        params = {
            "from": self.from_email,
            "to": to_emails,
            "subject": subject,
            "text": text_content,
        }
        if html_content:
            params["html"] = html_content

        if attachments:
            # Resend expects base64 content
            params["attachments"] = [
                {
                    "filename": attachment.filename,
                    "content": base64.b64encode(attachment.content).decode("utf-8"),
                    "content_type": attachment.content_type,
                }
                for attachment in attachments
            ]
        return params

    async def send_email(
        self,
        to_email: Union[str, List[str]],
        subject: str,
        text_content: str,
        html_content: Optional[str] = None,
        attachments: Optional[List[EmailAttachment]] = None
    ) -> bool:
        """
        Send an email

        Args:
            to_email: Recipient (string or list)
            subject: Subject line
            text_content: Plain text body
            html_content: Optional HTML body
            attachments: Optional binary attachments

        Returns:
            True if Resend accepted the message (or sending is disabled)

        Raises:
            Exception: Transport errors from the Resend SDK propagate to the caller
        """
        to_emails = [to_email] if isinstance(to_email, str) else to_email

        if not self.resend_configured:
            logger.warning(f"Resend not configured. Simulated email to {to_emails}: {subject}")
            return True

        params = self.build_params(to_emails, subject, text_content, html_content, attachments)

        # The Resend SDK is synchronous
        result = await asyncio.to_thread(resend.Emails.send, params)

        if not result or not result.get("id"):
            logger.error(f"Resend did not accept email to {to_emails}: {result}")
            return False

        logger.info(f"Email sent to {to_emails}: {subject} (ID: {result.get('id')})")
        return True
