import logging
from typing import List, Optional

from pydantic import TypeAdapter

from booking_manager import BookingRecordManager
from booking_schemas import (
    PRODUCT_TABLES,
    AuthUser,
    BookableProduct,
    Booking,
    BookingRequest,
    BookingStatus,
    CheckoutStart,
    PaymentStatus,
    ProductType,
    Profile,
    ReceiptView,
    ReconcileOutcome,
)
from errors import InvalidBookingState, NotFound, PaymentProviderUnavailable
from notifications import BookingNotifier
from payments.checkout import CheckoutSessionBroker
from persistence.store import Store
from pricing import PricingEngine, parse_date
from receipts import build_receipt, render_receipt_pdf
from reconciliation import ReconciliationService
from retry import RetryPolicy

logger = logging.getLogger(__name__)

PRODUCTS = TypeAdapter(BookableProduct)


class BookingService:
    """
    Request-level booking flow:
    price -> pending booking -> checkout session -> (user pays) -> reconcile -> receipt.
    """

    def __init__(self, store: Store, records: BookingRecordManager, pricing: PricingEngine,
                 broker: CheckoutSessionBroker, notifier: BookingNotifier, profile_reads: RetryPolicy):
        self.store = store
        self.records = records
        self.pricing = pricing
        self.broker = broker
        self.notifier = notifier
        self.profile_reads = profile_reads
        self.reconciler = ReconciliationService(records, broker, on_paid=self._booking_paid)

    # --- lookups ---

    def load_product(self, product_type, reference_id: str):
        product_type = ProductType(product_type)
        record = self.store.get(PRODUCT_TABLES[product_type], reference_id)
        if record is None:
            return None
        return PRODUCTS.validate_python({**record, "product_type": product_type.value})

    def load_profile(self, user_id: str) -> Optional[Profile]:
        # the profile row is written by a signup trigger and may lag behind the auth user
        record = self.profile_reads.run(lambda: self.store.get("profiles", user_id), label=f"profile {user_id}")
        return Profile.model_validate(record) if record is not None else None

    def _owned(self, user: AuthUser, booking_id: str) -> Booking:
        booking = self.records.find(booking_id)
        if booking is None or booking.user_id != user.id:
            raise NotFound(f"Booking {booking_id} not found")
        return booking

    # --- checkout ---

    def start_checkout(self, user: AuthUser, request: BookingRequest) -> CheckoutStart:
        product = self.load_product(request.product_type, request.reference_id)
        quote = self.pricing.compute_price(
            product, request.number_of_guests, request.check_in_date, request.check_out_date
        )
        check_in = parse_date(request.check_in_date)
        check_out = parse_date(request.check_out_date) if product.product_type == ProductType.HOTEL else None

        booking_id = self.records.create_pending_booking(
            user_id=user.id,
            booking_type=request.product_type,
            reference_id=request.reference_id,
            check_in=check_in.date() if check_in else None,
            check_out=check_out.date() if check_out else None,
            count=request.number_of_guests,
            special_requests=request.special_requests,
            amount=quote.amount,
        )
        booking = self.records.get(booking_id)
        self.notifier.booking_received(booking, product.name, self.load_profile(user.id), user.email)
        return self._open_session(booking, product, quote.description)

    def retry_checkout(self, user: AuthUser, booking_id: str) -> CheckoutStart:
        """Open a fresh session for a booking whose earlier checkout failed or was abandoned."""
        self._owned(user, booking_id)
        booking = self.reconciler.reconcile(booking_id)
        if booking.payment_status != PaymentStatus.PENDING or booking.booking_status != BookingStatus.PENDING:
            raise InvalidBookingState(
                f"This booking is {booking.booking_status.value} with payment {booking.payment_status.value}"
                " and is no longer awaiting payment"
            )
        product = self.load_product(booking.booking_type, booking.reference_id)
        # re-checks the listing is still bookable; the stored amount is what gets charged
        quote = self.pricing.compute_price(
            product, booking.number_of_guests, booking.check_in_date, booking.check_out_date
        )
        self._close_previous_session(booking)
        return self._open_session(booking, product, quote.description)

    def _close_previous_session(self, booking: Booking) -> None:
        # an old session left open could be paid on top of the new one
        try:
            closed = self.reconciler.close_session(booking)
        except PaymentProviderUnavailable as e:
            e.booking_id = booking.id
            raise
        if not closed:
            raise InvalidBookingState("This booking has just been paid and is no longer awaiting payment")

    def _open_session(self, booking: Booking, product, description: str) -> CheckoutStart:
        try:
            session = self.broker.open_session(booking, product, description)
        except PaymentProviderUnavailable as e:
            # the pending booking stays so the user can retry checkout
            e.booking_id = booking.id
            raise
        self.records.attach_checkout_session(booking.id, session.session_id)
        return CheckoutStart(
            booking_id=booking.id,
            session_id=session.session_id,
            client_secret=session.client_secret,
            amount=booking.total_amount,
            currency=booking.currency,
        )

    # --- read paths ---

    def booking_status(self, user: AuthUser, booking_id: str) -> ReconcileOutcome:
        self._owned(user, booking_id)
        return self.reconciler.sync(booking_id)

    def list_bookings(self, user: AuthUser) -> List[Booking]:
        return self.records.list_for_user(user.id)

    def receipt(self, user: AuthUser, booking_id: str) -> ReceiptView:
        booking = self.booking_status(user, booking_id).booking
        product = self.load_product(booking.booking_type, booking.reference_id)
        return build_receipt(booking, product, self.load_profile(user.id))

    def receipt_pdf(self, user: AuthUser, booking_id: str) -> bytes:
        return render_receipt_pdf(self.receipt(user, booking_id))

    def _booking_paid(self, booking: Booking) -> None:
        product = self.load_product(booking.booking_type, booking.reference_id)
        item_name = product.name if product else "your booking"
        self.notifier.booking_confirmed(booking, item_name, self.load_profile(booking.user_id))
