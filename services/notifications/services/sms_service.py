"""SMS and WhatsApp delivery through the Twilio REST API"""
import logging
from typing import Optional

import httpx

from shared.exceptions import NotificationError

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioMessagingService:
    """Thin async client for Twilio's Messages resource"""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        sms_from: str = "",
        whatsapp_from: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.sms_from = sms_from
        self.whatsapp_from = whatsapp_from
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token)

    async def _create_message(self, to: str, from_: str, body: str) -> str:
        url = f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"
        async with httpx.AsyncClient(
            auth=(self.account_sid, self.auth_token),
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            response = await client.post(url, data={"To": to, "From": from_, "Body": body})

        if response.status_code >= 500:
            # Let the retry helper try again on server errors
            response.raise_for_status()
        if response.status_code not in (200, 201):
            raise NotificationError(f"Twilio rejected message to {to}: {response.status_code} {response.text}")

        sid = response.json().get("sid", "")
        logger.info(f"Twilio message {sid} queued to {to}")
        return sid

    async def send_sms(self, to: str, body: str) -> str:
        if not self.configured or not self.sms_from:
            raise NotificationError("Twilio SMS is not configured")
        return await self._create_message(to, self.sms_from, body)

    async def send_whatsapp(self, to: str, body: str) -> str:
        if not self.configured or not self.whatsapp_from:
            raise NotificationError("Twilio WhatsApp is not configured")
        return await self._create_message(f"whatsapp:{to}", f"whatsapp:{self.whatsapp_from}", body)
