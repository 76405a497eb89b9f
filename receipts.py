"""
Read-only receipt view of a booking. No I/O: whatever is missing is shown as N/A.
"""
from datetime import date, datetime
from typing import List, Optional

from fpdf import FPDF

from booking_schemas import Booking, ProductType, Profile, ReceiptLine, ReceiptView
from payments.currency import format_amount

PLACEHOLDER = "N/A"


def _text(value) -> str:
    if value is None:
        return PLACEHOLDER
    text = str(value).strip()
    return text or PLACEHOLDER


def format_date(value: Optional[date]) -> str:
    if value is None:
        return PLACEHOLDER
    return value.strftime("%d %b %Y")


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return PLACEHOLDER
    return value.strftime("%d %b %Y %H:%M")


def _detail_lines(booking: Booking) -> List[ReceiptLine]:
    guests = str(booking.number_of_guests)
    if booking.booking_type == ProductType.HOTEL:
        return [
            ReceiptLine(label="Check-in", value=format_date(booking.check_in_date)),
            ReceiptLine(label="Check-out", value=format_date(booking.check_out_date)),
            ReceiptLine(label="Guests", value=guests),
        ]
    if booking.booking_type == ProductType.TOUR:
        return [
            ReceiptLine(label="Start Date", value=format_date(booking.check_in_date)),
            ReceiptLine(label="Participants", value=guests),
        ]
    return [
        ReceiptLine(label="Visit Date", value=format_date(booking.check_in_date)),
        ReceiptLine(label="Visitors", value=guests),
    ]


def build_receipt(booking: Booking, product=None, profile: Optional[Profile] = None) -> ReceiptView:
    return ReceiptView(
        reference=booking.id[:8].upper(),
        booking_type=booking.booking_type.value.capitalize(),
        item_name=_text(getattr(product, "name", None)),
        location=_text(getattr(product, "location", None)),
        booking_status=booking.booking_status.value.capitalize(),
        payment_status=booking.payment_status.value.capitalize(),
        customer_name=_text(profile.full_name if profile else None),
        customer_email=_text(profile.email if profile else None),
        customer_phone=_text(profile.phone if profile else None),
        details=_detail_lines(booking),
        special_requests=booking.special_requests or None,
        total=format_amount(booking.total_amount, booking.currency),
        booked_on=format_timestamp(booking.created_at),
    )


def render_receipt_text(view: ReceiptView) -> List[str]:
    lines = [
        "Explore Rwanda - Booking Receipt",
        "",
        f"Booking ID: {view.reference}",
        f"Type: {view.booking_type}",
        f"Item: {view.item_name}",
        f"Location: {view.location}",
        f"Status: {view.booking_status}",
        f"Payment Status: {view.payment_status}",
        "",
        f"Name: {view.customer_name}",
        f"Email: {view.customer_email}",
        f"Phone: {view.customer_phone}",
        "",
    ]
    lines += [f"{line.label}: {line.value}" for line in view.details]
    if view.special_requests:
        lines += ["", "Special Requests:", view.special_requests]
    lines += ["", f"Total Amount Paid: {view.total}", f"Booked on {view.booked_on}"]
    return lines


def render_receipt_pdf(view: ReceiptView) -> bytes:
    pdf = FPDF()
    pdf.add_page()
    pdf.set_font("helvetica", size=12)
    text = "\n".join(render_receipt_text(view))
    # core fonts are latin-1 only
    text = text.encode("latin-1", "replace").decode("latin-1")
    pdf.multi_cell(0, 8, text)
    return bytes(pdf.output())
