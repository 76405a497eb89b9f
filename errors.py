from typing import Optional


class BookingError(Exception):
    """
    Base error for the booking/payment flow.
    status_code is what the HTTP layer answers with when the error reaches it.
    """

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class InvalidProductState(BookingError):
    """Product is missing or not approved for booking."""

    status_code = 409


class InvalidBookingState(BookingError):
    """Booking is not in a state that allows the requested action."""

    status_code = 409


class InvalidGuestCount(BookingError):
    status_code = 422


class PaymentProviderUnavailable(BookingError):
    """
    Payment provider is unreachable or not configured.
    Retryable: any booking already persisted is kept, booking_id says which one.
    """

    status_code = 503

    def __init__(self, message: str = "", booking_id: Optional[str] = None):
        super().__init__(message)
        self.booking_id = booking_id


class IllegalTransition(BookingError):
    status_code = 500


class NotFound(BookingError):
    status_code = 404


class Unauthorized(BookingError):
    status_code = 401


class Forbidden(BookingError):
    status_code = 403


class EmailDeliveryError(BookingError):
    status_code = 502
