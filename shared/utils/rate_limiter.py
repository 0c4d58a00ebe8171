"""
Rate limiting with slowapi

Storage defaults to process memory; point RATE_LIMIT_STORAGE_URI at Redis to share
limits between instances.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, Response
from starlette.responses import JSONResponse
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def get_real_client_ip(request: Request) -> str:
    """
    Real client IP behind proxies/load balancers.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # client, proxy1, proxy2: the first one is the client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    cf_connecting_ip = request.headers.get("CF-Connecting-IP")
    if cf_connecting_ip:
        return cf_connecting_ip

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_real_client_ip,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    headers_enabled=False,  # Plain dict/JSONResponse returns stay untouched
)
logger.info(f"Rate limiter initialized with storage: {settings.RATE_LIMIT_STORAGE_URI.split('@')[-1]}")


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    JSON 429 with a Retry-After hint.
    """
    logger.warning(
        f"Rate limit exceeded - IP: {get_real_client_ip(request)}, "
        f"Path: {request.url.path}, "
        f"Limit: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "detail": "Too many requests. Please wait before trying again.",
        },
        headers={"Retry-After": "60"},
    )


RATE_LIMITS = {
    # Payment providers may burst deliveries
    "webhook": "100/minute",

    # Browser checkout callbacks
    "payment_verify": "20/minute",

    # Public ticket lookups (scanners, attendees)
    "public": "60/minute",

    "admin": "120/minute",
}
