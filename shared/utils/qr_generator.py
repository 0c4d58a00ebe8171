"""QR code generation for ticket verification links"""
import base64
import io
import logging

import qrcode
from qrcode.constants import ERROR_CORRECT_M

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/png;base64,"


def generate_qr_png(data: str, box_size: int = 10, border: int = 4) -> bytes:
    """
    Render data as a PNG QR code

    Medium error correction keeps the code readable when printed small.
    The output is deterministic for the same input.

    Args:
        data: Content to encode (the ticket verification URL)
        box_size: Pixels per module
        border: Quiet zone width in modules

    Returns:
        PNG image bytes
    """
    if not data:
        raise ValueError("QR data cannot be empty")

    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    img_buffer = io.BytesIO()
    img.save(img_buffer, format="PNG")
    img_bytes = img_buffer.getvalue()

    logger.debug(f"QR code generated ({len(img_bytes)} bytes)")
    return img_bytes


def png_to_data_url(png_bytes: bytes) -> str:
    """Embed PNG bytes in a data URL"""
    return DATA_URL_PREFIX + base64.b64encode(png_bytes).decode("utf-8")


def generate_qr_data_url(data: str) -> str:
    """QR code for data as a data:image/png;base64 URL"""
    return png_to_data_url(generate_qr_png(data))
