import logging

from booking_schemas import Booking, CheckoutSession, SessionStatus
from payments.gateways import PaymentGateway

logger = logging.getLogger(__name__)


def build_return_url(template: str, booking_id: str) -> str:
    # {CHECKOUT_SESSION_ID} is left for the provider to fill in
    return template.replace("{booking_id}", booking_id)


class CheckoutSessionBroker:
    """
    Opens a provider checkout session for a booking and reads its outcome back.
    The booking id and owner go into the session metadata so the return redirect
    and webhooks resolve to exactly one booking without client-supplied ids.
    """

    def __init__(self, gateway: PaymentGateway, return_url_template: str):
        self.gateway = gateway
        self.return_url_template = return_url_template

    def open_session(self, booking: Booking, product, description: str, return_url_template: str = None) -> CheckoutSession:
        metadata = {
            "booking_id": booking.id,
            "user_id": booking.user_id,
        }
        session = self.gateway.create_session(
            amount_minor_units=booking.total_amount,
            currency=booking.currency,
            product_name=getattr(product, "name", None) or f"{booking.booking_type.value.title()} booking",
            product_description=description,
            success_return_url=build_return_url(return_url_template or self.return_url_template, booking.id),
            metadata=metadata,
        )
        logger.info("Opened %s checkout session %s for booking %s", self.gateway.name, session.session_id, booking.id)
        return session

    def retrieve_session(self, session_id: str) -> SessionStatus:
        return self.gateway.retrieve_session(session_id)

    def expire_session(self, session_id: str) -> bool:
        """False means the session was paid before it could be closed."""
        expired = self.gateway.expire_session(session_id)
        if expired:
            logger.info("Expired %s checkout session %s", self.gateway.name, session_id)
        return expired
