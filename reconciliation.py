import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from booking_manager import BookingRecordManager
from booking_schemas import Booking, BookingStatus, PaymentStatus, ReconcileOutcome
from errors import Forbidden, IllegalTransition, InvalidBookingState, NotFound, PaymentProviderUnavailable
from payments.checkout import CheckoutSessionBroker
from payments.gateways import payment_intent_id_of
from persistence.models import utcnow

logger = logging.getLogger(__name__)


class ReconciliationService:
    """
    Brings a booking's payment state in line with the payment provider.

    Safe to call any number of times (every receipt page view does): a paid
    booking returns straight away, and the paid transition is a conditional
    write, so only the caller that actually moved the row fires on_paid.
    """

    def __init__(self, records: BookingRecordManager, broker: CheckoutSessionBroker,
                 on_paid: Optional[Callable[[Booking], None]] = None):
        self.records = records
        self.broker = broker
        self.on_paid = on_paid

    def reconcile(self, booking_id: str) -> Booking:
        return self.sync(booking_id).booking

    def sync(self, booking_id: str) -> ReconcileOutcome:
        booking = self.records.get(booking_id)

        if booking.payment_status == PaymentStatus.COMPLETED:
            return ReconcileOutcome(booking=booking)
        if not booking.stripe_session_id:
            return ReconcileOutcome(booking=booking)
        if booking.payment_status != PaymentStatus.PENDING:
            # failed/refunded bookings are settled, the provider has nothing to add
            return ReconcileOutcome(booking=booking)

        try:
            status = self.broker.retrieve_session(booking.stripe_session_id)
        except PaymentProviderUnavailable as e:
            logger.warning("Could not reach payment provider for booking %s: %s", booking_id, e.message)
            return ReconcileOutcome(booking=booking, provider_error=e.message)

        if not status.paid:
            return ReconcileOutcome(booking=booking)
        return self._apply_paid(booking_id, status.payment_intent_id)

    def apply_checkout_completed(self, session: dict) -> ReconcileOutcome:
        """Webhook path: the (signature-verified) session payload is authoritative."""
        metadata = session.get("metadata") or {}
        booking_id = metadata.get("booking_id")
        if not booking_id:
            raise NotFound("No booking id in session metadata")
        booking = self.records.get(booking_id)
        if metadata.get("user_id") != booking.user_id:
            logger.error("Session %s metadata user does not own booking %s", session.get("id"), booking_id)
            raise Forbidden("Checkout session does not belong to this booking's owner")

        if session.get("payment_status") != "paid" or booking.payment_status == PaymentStatus.COMPLETED:
            return ReconcileOutcome(booking=booking)
        payment_intent_id = payment_intent_id_of(session.get("payment_intent"))
        if booking.booking_status != BookingStatus.PENDING or booking.payment_status != PaymentStatus.PENDING:
            return self._unmatched_payment(booking, session.get("id"), payment_intent_id)
        try:
            return self._apply_paid(booking_id, payment_intent_id)
        except IllegalTransition:
            # closed between our read and the paid write
            return self._unmatched_payment(self.records.get(booking_id), session.get("id"), payment_intent_id)

    def _unmatched_payment(self, booking: Booking, session_id: Optional[str],
                           payment_intent_id: Optional[str]) -> ReconcileOutcome:
        logger.error(
            "Payment %s (session %s) received for booking %s which is %s/%s; refund required",
            payment_intent_id, session_id, booking.id, booking.booking_status.value, booking.payment_status.value,
        )
        if self.records.record_unmatched_payment(booking.id, payment_intent_id):
            booking = self.records.get(booking.id)
        return ReconcileOutcome(booking=booking, refund_required=True)

    def _apply_paid(self, booking_id: str, payment_intent_id: Optional[str]) -> ReconcileOutcome:
        transitioned = self.records.mark_paid(booking_id, payment_intent_id)
        booking = self.records.get(booking_id)
        if transitioned and self.on_paid:
            self.on_paid(booking)
        return ReconcileOutcome(booking=booking, transitioned=transitioned)

    def close_session(self, booking: Booking) -> bool:
        """
        Expire the booking's checkout session so the customer can no longer pay it.
        Returns False when the session was paid first; the payment is applied
        before returning. Provider failures propagate as PaymentProviderUnavailable.
        """
        if not booking.stripe_session_id:
            return True
        if self.broker.expire_session(booking.stripe_session_id):
            return True
        logger.info("Session %s of booking %s was paid before it could be closed",
                    booking.stripe_session_id, booking.id)
        self.sync(booking.id)
        return False

    def cancel_unpaid(self, booking_id: str) -> Booking:
        """Cancel a booking awaiting payment, closing its checkout session first."""
        booking = self.reconcile(booking_id)
        if booking.booking_status == BookingStatus.PENDING and booking.payment_status == PaymentStatus.PENDING:
            if not self.close_session(booking):
                raise InvalidBookingState(f"Booking {booking_id} was paid and can no longer be cancelled")
        self.records.cancel(booking_id)
        return self.records.get(booking_id)

    def expire_stale(self, older_than: timedelta, now: Optional[datetime] = None) -> List[str]:
        """
        Cancel bookings still pending payment after `older_than`. Each one is
        reconciled first and its session closed, so a payment that landed late
        is never thrown away and none can land after the cancel.
        """
        cutoff = (now or utcnow()) - older_than
        expired = []
        for booking in self.records.list_pending():
            if booking.created_at is None or booking.created_at > cutoff:
                continue
            if booking.stripe_session_id:
                outcome = self.sync(booking.id)
                if outcome.provider_error:
                    logger.info("Skipping expiry of booking %s, provider state unknown", booking.id)
                    continue
                if outcome.booking.booking_status != BookingStatus.PENDING:
                    continue
                try:
                    if not self.close_session(outcome.booking):
                        continue
                except PaymentProviderUnavailable as e:
                    logger.info("Skipping expiry of booking %s, session could not be closed: %s",
                                booking.id, e.message)
                    continue
            try:
                self.records.cancel(booking.id)
            except IllegalTransition:
                logger.info("Booking %s changed state during expiry, left as is", booking.id)
                continue
            expired.append(booking.id)
        if expired:
            logger.info("Expired %d abandoned booking(s)", len(expired))
        return expired
