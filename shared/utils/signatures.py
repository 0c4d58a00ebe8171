"""HMAC-SHA256 signature checks for Razorpay webhooks and checkout callbacks"""
import hashlib
import hmac
from typing import Optional

from shared.exceptions import InvalidSignatureError


def compute_signature(message: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of message keyed with secret"""
    return hmac.new(
        secret.encode('utf-8'),
        message,
        hashlib.sha256
    ).hexdigest()


def verify_webhook_signature(raw_body: bytes, secret: str, signature: Optional[str]) -> bool:
    """
    Verify the X-Razorpay-Signature header of a webhook delivery

    The HMAC is computed over the raw request bytes exactly as received. Parsing
    and re-serializing the JSON first yields a different value.

    Args:
        raw_body: Unparsed request body
        secret: Webhook secret configured in the Razorpay dashboard
        signature: Value of the signature header

    Returns:
        True only if the signature matches
    """
    if not secret or not signature:
        return False

    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected.encode('utf-8'), signature.encode('utf-8'))


def verify_checkout_signature(
    order_id: str,
    payment_id: str,
    key_secret: str,
    signature: Optional[str]
) -> bool:
    """
    Verify the signature returned to the browser by Razorpay Checkout

    Razorpay signs "{order_id}|{payment_id}" with the API key secret.
    """
    if not key_secret or not signature:
        return False

    message = f"{order_id}|{payment_id}".encode('utf-8')
    expected = compute_signature(message, key_secret)
    return hmac.compare_digest(expected.encode('utf-8'), signature.encode('utf-8'))


def require_webhook_signature(raw_body: bytes, secret: str, signature: Optional[str]) -> None:
    """
    Raises:
        InvalidSignatureError: If the signature header is missing or does not match
    """
    if not verify_webhook_signature(raw_body, secret, signature):
        raise InvalidSignatureError(
            "Webhook signature missing" if not signature else "Webhook signature mismatch"
        )
