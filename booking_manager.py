import logging
from datetime import date
from typing import Optional

from booking_schemas import Booking, BookingStatus, PaymentStatus, ProductType
from errors import IllegalTransition, NotFound
from persistence.store import Store

logger = logging.getLogger(__name__)

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
}

BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED},
}


def can_transition(table: dict, current, new) -> bool:
    return new in table.get(current, set())


def check_transition(table: dict, current, new, booking_id: str) -> None:
    if not can_transition(table, current, new):
        logger.error("Illegal transition for booking %s: %s -> %s", booking_id, current.value, new.value)
        raise IllegalTransition(f"Booking {booking_id} cannot move from {current.value} to {new.value}")


class BookingRecordManager:
    """
    Sole writer of Booking rows and their status fields.
    Status changes are conditional writes: a row only moves if it is still in the
    state the transition starts from, so racing callers apply a change at most once.
    """

    table = "bookings"

    def __init__(self, store: Store, currency: str = "rwf"):
        self.store = store
        self.currency = currency

    def get(self, booking_id: str) -> Booking:
        record = self.store.get(self.table, booking_id)
        if record is None:
            raise NotFound(f"Booking {booking_id} not found")
        return Booking.model_validate(record)

    def find(self, booking_id: str) -> Optional[Booking]:
        record = self.store.get(self.table, booking_id)
        return Booking.model_validate(record) if record is not None else None

    def list_for_user(self, user_id: str):
        records = self.store.query(self.table, order_by="created_at", descending=True, user_id=user_id)
        return [Booking.model_validate(r) for r in records]

    def list_pending(self):
        records = self.store.query(
            self.table,
            order_by="created_at",
            payment_status=PaymentStatus.PENDING.value,
            booking_status=BookingStatus.PENDING.value,
        )
        return [Booking.model_validate(r) for r in records]

    def create_pending_booking(self, user_id: str, booking_type: ProductType, reference_id: str,
                               check_in: Optional[date], check_out: Optional[date], count: int,
                               special_requests: Optional[str], amount: int) -> str:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValueError("amount must be a non-negative integer in the smallest currency unit")
        record = self.store.insert(self.table, {
            "user_id": user_id,
            "booking_type": ProductType(booking_type).value,
            "reference_id": reference_id,
            "check_in_date": check_in,
            "check_out_date": check_out,
            "number_of_guests": count,
            "total_amount": amount,
            "currency": self.currency,
            "special_requests": special_requests or None,
            "payment_status": PaymentStatus.PENDING.value,
            "booking_status": BookingStatus.PENDING.value,
        })
        logger.info("Created pending %s booking %s for user %s (%d %s)",
                    record["booking_type"], record["id"], user_id, amount, self.currency)
        return record["id"]

    def attach_checkout_session(self, booking_id: str, session_id: str) -> None:
        """Store (or overwrite, on checkout retry) the session reference of an unpaid booking."""
        changed = self.store.update_where(
            self.table, booking_id,
            {"payment_status": PaymentStatus.PENDING.value, "booking_status": BookingStatus.PENDING.value},
            {"stripe_session_id": session_id},
        )
        if not changed:
            booking = self.get(booking_id)
            logger.error("Cannot attach session to booking %s in state %s/%s",
                         booking_id, booking.payment_status.value, booking.booking_status.value)
            raise IllegalTransition(f"Booking {booking_id} is no longer awaiting payment")

    def mark_paid(self, booking_id: str, payment_intent_id: Optional[str]) -> bool:
        """
        pending/pending -> completed/confirmed in one conditional write.
        Returns True if this call applied the transition, False if the booking
        was already paid (idempotent no-op). Any other state is IllegalTransition.
        """
        changed = self.store.update_where(
            self.table, booking_id,
            {"payment_status": PaymentStatus.PENDING.value, "booking_status": BookingStatus.PENDING.value},
            {
                "payment_status": PaymentStatus.COMPLETED.value,
                "booking_status": BookingStatus.CONFIRMED.value,
                "stripe_payment_intent_id": payment_intent_id,
            },
        )
        if changed:
            logger.info("Booking %s paid (payment intent %s)", booking_id, payment_intent_id)
            return True

        booking = self.get(booking_id)
        if booking.payment_status == PaymentStatus.COMPLETED:
            logger.debug("Booking %s already paid, nothing to do", booking_id)
            return False
        check_transition(PAYMENT_TRANSITIONS, booking.payment_status, PaymentStatus.COMPLETED, booking_id)
        check_transition(BOOKING_TRANSITIONS, booking.booking_status, BookingStatus.CONFIRMED, booking_id)
        # legal from the re-read state: the row moved between our write and the read
        raise IllegalTransition(f"Booking {booking_id} changed state concurrently")

    def record_unmatched_payment(self, booking_id: str, payment_intent_id: Optional[str]) -> bool:
        """Keep the intent of a payment that arrived after the booking was closed, state untouched."""
        if not payment_intent_id:
            return False
        return self.store.update_where(
            self.table, booking_id,
            {"stripe_payment_intent_id": None},
            {"stripe_payment_intent_id": payment_intent_id},
        )

    def mark_failed(self, booking_id: str) -> None:
        self._move(booking_id, payment=(PaymentStatus.PENDING, PaymentStatus.FAILED))

    def cancel(self, booking_id: str) -> None:
        """Admin cancellation of an unpaid booking; its payment is marked failed."""
        self._move(
            booking_id,
            booking=(BookingStatus.PENDING, BookingStatus.CANCELLED),
            payment=(PaymentStatus.PENDING, PaymentStatus.FAILED),
        )
        logger.info("Booking %s cancelled", booking_id)

    def complete(self, booking_id: str) -> None:
        """confirmed -> completed once the stay/tour/visit is over."""
        self._move(
            booking_id,
            booking=(BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
            require_payment=PaymentStatus.COMPLETED,
        )
        logger.info("Booking %s completed", booking_id)

    def _move(self, booking_id: str, booking=None, payment=None, require_payment=None) -> None:
        expected, fields = {}, {}
        if booking:
            check_transition(BOOKING_TRANSITIONS, booking[0], booking[1], booking_id)
            expected["booking_status"] = booking[0].value
            fields["booking_status"] = booking[1].value
        if payment:
            check_transition(PAYMENT_TRANSITIONS, payment[0], payment[1], booking_id)
            expected["payment_status"] = payment[0].value
            fields["payment_status"] = payment[1].value
        if require_payment:
            expected["payment_status"] = require_payment.value

        if self.store.update_where(self.table, booking_id, expected, fields):
            return
        current = self.get(booking_id)
        if booking:
            check_transition(BOOKING_TRANSITIONS, current.booking_status, booking[1], booking_id)
        if payment:
            check_transition(PAYMENT_TRANSITIONS, current.payment_status, payment[1], booking_id)
        logger.error("Booking %s in state %s/%s cannot make this move",
                     booking_id, current.payment_status.value, current.booking_status.value)
        raise IllegalTransition(
            f"Booking {booking_id} is {current.booking_status.value}/{current.payment_status.value}"
        )
