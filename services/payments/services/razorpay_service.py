"""Razorpay REST API client"""
import logging
from typing import Dict, Optional

import httpx

from shared.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

PROVIDER_NAME = "razorpay"


class RazorpayService:
    """Reads payments from the Razorpay API with basic auth (key id / key secret)"""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_base: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

        if not key_id or not key_secret:
            logger.warning("RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET not configured. Checkout verification will fail.")

    async def fetch_payment(self, payment_id: str) -> Dict:
        """
        Fetch a payment entity

        Returns:
            The payment entity (id, amount in minor units, status, notes, ...)

        Raises:
            PaymentGatewayError: On network errors, non-200 responses or malformed payloads
        """
        url = f"{self.api_base}/payments/{payment_id}"
        try:
            async with httpx.AsyncClient(
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise PaymentGatewayError(
                f"Razorpay request failed: {type(e).__name__}: {e}", provider_payment_id=payment_id
            ) from e

        if response.status_code != 200:
            raise PaymentGatewayError(
                f"Razorpay returned {response.status_code} for payment lookup",
                provider_payment_id=payment_id
            )

        try:
            entity = response.json()
        except ValueError as e:
            raise PaymentGatewayError(
                "Razorpay returned a non-JSON payment payload", provider_payment_id=payment_id
            ) from e

        if not isinstance(entity, dict) or "amount" not in entity or "status" not in entity:
            raise PaymentGatewayError("Razorpay payment payload is incomplete", provider_payment_id=payment_id)
        return entity
