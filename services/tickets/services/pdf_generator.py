"""Printable PDF tickets rendered with ReportLab"""
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import List, Optional

from reportlab.lib.colors import HexColor, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

GUEST_NAME = "Guest"

PRIMARY_COLOR = HexColor("#2962ff")
SECONDARY_COLOR = HexColor("#1f2937")
TEXT_COLOR = HexColor("#6b7280")
RULE_COLOR = HexColor("#e5e7eb")


@dataclass(frozen=True)
class TicketDocument:
    """Booking and event facts printed on a ticket; prices are never printed"""
    booking_code: str
    quantity: int
    status: str
    event_title: str
    event_start: datetime
    event_location: str
    verification_url: str
    attendee_name: Optional[str] = None
    attendee_email: Optional[str] = None
    organizer_name: Optional[str] = None
    organizer_email: Optional[str] = None


def _wrap(c: canvas.Canvas, text: str, font: str, size: float, max_width: float) -> List[str]:
    """Split text into lines that fit max_width"""
    words = text.split()
    if not words:
        return [""]
    lines = []
    current_line = words[0]
    for word in words[1:]:
        test_line = current_line + " " + word
        if c.stringWidth(test_line, font, size) < max_width:
            current_line = test_line
        else:
            lines.append(current_line)
            current_line = word
    lines.append(current_line)
    return lines


def _section_title(c: canvas.Canvas, title: str, x: float, y: float, content_width: float):
    c.setFillColor(SECONDARY_COLOR)
    c.setFont("Helvetica-Bold", 13)
    c.drawString(x, y, title)
    c.setStrokeColor(RULE_COLOR)
    c.setLineWidth(1)
    c.line(x, y - 2*mm, x + content_width, y - 2*mm)


def render_ticket_pdf(document: TicketDocument, qr_png: bytes, compress: bool = True) -> bytes:
    """
    Render a single-page A4 ticket

    The bytes are read from the buffer only after canvas.save() has returned, so the
    document is complete when this function returns.

    Args:
        document: Facts to print
        qr_png: PNG of the QR code pointing at the verification URL
        compress: Deflate page streams (disable to inspect the content in tests)

    Returns:
        PDF bytes
    """
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4, pageCompression=1 if compress else 0)
    c.setTitle(f"EventHive ticket {document.booking_code}")
    width, height = A4
    margin = 20*mm
    content_width = width - 2*margin

    # Header
    c.setFillColor(PRIMARY_COLOR)
    c.rect(0, height - 35*mm, width, 35*mm, fill=1, stroke=0)
    c.setFillColor(white)
    c.setFont("Helvetica-Bold", 20)
    c.drawString(margin, height - 17*mm, "EVENTHIVE")
    c.setFont("Helvetica", 11)
    c.drawString(margin, height - 25*mm, "Digital Event Ticket")
    c.setFont("Helvetica-Bold", 10)
    c.drawRightString(width - margin, height - 17*mm, f"Booking Code: {document.booking_code}")
    c.setFont("Helvetica", 9)
    c.drawRightString(width - margin, height - 25*mm, f"Status: {document.status.upper()}")

    # Event information
    y_pos = height - 50*mm
    _section_title(c, "EVENT INFORMATION", margin, y_pos, content_width)
    y_pos -= 10*mm

    c.setFillColor(SECONDARY_COLOR)
    c.setFont("Helvetica-Bold", 16)
    for line in _wrap(c, document.event_title, "Helvetica-Bold", 16, content_width):
        c.drawString(margin, y_pos, line)
        y_pos -= 7*mm
    y_pos -= 3*mm

    c.setFont("Helvetica", 11)
    c.setFillColor(SECONDARY_COLOR)
    c.drawString(margin, y_pos, f"Date: {document.event_start.strftime('%A, %B %d, %Y')}")
    c.drawString(margin + 100*mm, y_pos, f"Time: {document.event_start.strftime('%I:%M %p')}")
    y_pos -= 7*mm

    location_lines = _wrap(c, f"Location: {document.event_location}", "Helvetica", 11, content_width)
    for line in location_lines:
        c.drawString(margin, y_pos, line)
        y_pos -= 5*mm
    y_pos -= 8*mm

    # Ticket holder and booking details
    _section_title(c, "TICKET DETAILS", margin, y_pos, content_width)
    y_pos -= 10*mm
    c.setFillColor(SECONDARY_COLOR)
    c.setFont("Helvetica", 11)
    c.drawString(margin, y_pos, f"Attendee: {document.attendee_name or GUEST_NAME}")
    y_pos -= 7*mm
    if document.attendee_email:
        c.drawString(margin, y_pos, f"Email: {document.attendee_email}")
        y_pos -= 7*mm
    c.drawString(margin, y_pos, f"Booking Code: {document.booking_code}")
    y_pos -= 7*mm
    c.drawString(margin, y_pos, f"Quantity: {document.quantity}")
    y_pos -= 12*mm

    # QR code
    _section_title(c, "ENTRY QR CODE", margin, y_pos, content_width)
    y_pos -= 8*mm
    c.setFillColor(TEXT_COLOR)
    c.setFont("Helvetica", 10)
    c.drawString(margin, y_pos, "Present this QR code at the venue entrance for verification")

    qr_size = 50*mm
    qr_x = (width - qr_size) / 2
    qr_y = y_pos - qr_size - 5*mm
    c.setStrokeColor(RULE_COLOR)
    c.rect(qr_x - 2*mm, qr_y - 2*mm, qr_size + 4*mm, qr_size + 4*mm, fill=0, stroke=1)
    c.drawImage(ImageReader(BytesIO(qr_png)), qr_x, qr_y, width=qr_size, height=qr_size)
    y_pos = qr_y - 12*mm

    # Notes
    c.setFillColor(SECONDARY_COLOR)
    c.setFont("Helvetica-Bold", 11)
    c.drawString(margin, y_pos, "IMPORTANT NOTES")
    y_pos -= 6*mm
    c.setFont("Helvetica", 9)
    notes = [
        "1. Please arrive at the venue 15-30 minutes before the event starts",
        "2. Present this QR code for entry verification at the venue",
        "3. This ticket is non-transferable and valid only for the specified event",
    ]
    for note in notes:
        c.drawString(margin, y_pos, note)
        y_pos -= 5*mm

    # Footer
    c.setFillColor(TEXT_COLOR)
    c.setFont("Helvetica", 8)
    c.drawString(margin, 22*mm, f"Verification URL: {document.verification_url}")
    if document.organizer_name:
        organizer = document.organizer_name
        if document.organizer_email:
            organizer += f" <{document.organizer_email}>"
        c.drawString(margin, 17*mm, f"Event Organizer: {organizer}")
    c.drawString(margin, 12*mm, "Powered by EventHive - Digital Event Management System")

    c.showPage()
    c.save()
    return buffer.getvalue()
