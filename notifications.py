import logging
from html import escape
from typing import Optional

import requests

from booking_schemas import Booking, Profile
from errors import EmailDeliveryError
from payments.currency import format_amount

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailSender:
    """Transactional email through the Resend HTTP API."""

    def __init__(self, api_key: Optional[str], from_address: str, session: Optional[requests.Session] = None,
                 timeout: float = 10):
        self.api_key = api_key
        self.from_address = from_address
        self.http = session or requests.Session()
        self.timeout = timeout

    def send(self, to: str, subject: str, html: str) -> None:
        if not self.api_key:
            logger.warning("RESEND_API_KEY not set - email to %s (%s) not sent", to, subject)
            return
        try:
            resp = self.http.post(
                RESEND_API_URL,
                json={"from": self.from_address, "to": to, "subject": subject, "html": html},
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise EmailDeliveryError(f"Email provider unreachable: {e}") from e
        if not resp.ok:
            try:
                detail = resp.json().get("message", resp.text)
            except ValueError:
                detail = resp.text
            raise EmailDeliveryError(f"HTTP {resp.status_code}: {detail}")
        logger.info("Sent '%s' email to %s", subject, to)


def _layout(title: str, body: str) -> str:
    return (
        "<div style=\"font-family: Arial, sans-serif; max-width: 560px; margin: 0 auto;\">"
        "<h2 style=\"color: #059669;\">Explore Rwanda</h2>"
        f"<h3>{escape(title)}</h3>{body}"
        "<p style=\"color: #6b7280; font-size: 12px;\">Thank you for exploring Rwanda with us.</p>"
        "</div>"
    )


def render_booking_received(booking: Booking, item_name: str, greeting_name: str) -> str:
    body = (
        f"<p>Hi {escape(greeting_name)},</p>"
        f"<p>We have received your {escape(booking.booking_type.value)} booking for "
        f"<strong>{escape(item_name)}</strong>. Complete the payment to confirm it.</p>"
        f"<p>Amount due: <strong>{escape(format_amount(booking.total_amount, booking.currency))}</strong></p>"
        f"<p>Reference: {escape(booking.id[:8].upper())}</p>"
    )
    return _layout("Booking received", body)


def render_booking_confirmed(booking: Booking, item_name: str, greeting_name: str) -> str:
    body = (
        f"<p>Hi {escape(greeting_name)},</p>"
        f"<p>Your payment was successful and your booking for <strong>{escape(item_name)}</strong> "
        "is confirmed.</p>"
        f"<p>Total paid: <strong>{escape(format_amount(booking.total_amount, booking.currency))}</strong></p>"
        f"<p>Reference: {escape(booking.id[:8].upper())}</p>"
    )
    return _layout("Booking confirmed", body)


class BookingNotifier:
    """
    Booking emails. Delivery is best effort: a failed email is logged and never
    undoes or blocks the booking write that triggered it.
    """

    def __init__(self, sender: EmailSender):
        self.sender = sender

    def _deliver(self, to: Optional[str], subject: str, html: str) -> bool:
        if not to:
            logger.warning("No email address for notification '%s'", subject)
            return False
        try:
            self.sender.send(to, subject, html)
        except EmailDeliveryError:
            logger.exception("Failed to send '%s' email to %s", subject, to)
            return False
        return True

    def booking_received(self, booking: Booking, item_name: str, profile: Optional[Profile], email: Optional[str]) -> bool:
        name = (profile.full_name if profile else None) or "traveller"
        return self._deliver(
            (profile.email if profile else None) or email,
            "Your Explore Rwanda booking is awaiting payment",
            render_booking_received(booking, item_name, name),
        )

    def booking_confirmed(self, booking: Booking, item_name: str, profile: Optional[Profile]) -> bool:
        name = (profile.full_name if profile else None) or "traveller"
        return self._deliver(
            profile.email if profile else None,
            "Your Explore Rwanda booking is confirmed",
            render_booking_confirmed(booking, item_name, name),
        )
