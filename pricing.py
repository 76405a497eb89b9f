from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from booking_schemas import Attraction, Hotel, ProductType, Quote, Tour
from errors import InvalidGuestCount, InvalidProductState

DateLike = Union[date, datetime, str, None]

ONE_DAY = timedelta(days=1)


def _naive_utc(value: datetime) -> datetime:
    # offset-aware values are moved to UTC first so mixed offsets compare correctly
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def parse_date(value: DateLike) -> Optional[datetime]:
    """Best-effort ISO date/datetime parse; anything unreadable gives None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return _naive_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def count_nights(check_in: DateLike, check_out: DateLike) -> int:
    """ceil((check_out - check_in) / 1 day), clamped to at least one night."""
    start, end = parse_date(check_in), parse_date(check_out)
    if start is None or end is None or end <= start:
        return 1
    delta = end - start
    nights = delta.days + (1 if (delta.seconds or delta.microseconds) else 0)
    return max(1, nights)


def _check_count(count, upper: int, noun: str) -> int:
    # bool is an int subclass, reject it explicitly
    if isinstance(count, bool) or not isinstance(count, int):
        raise InvalidGuestCount(f"Number of {noun} must be a whole number")
    if count < 1 or count > upper:
        raise InvalidGuestCount(f"Number of {noun} must be between 1 and {upper}")
    return count


class HotelPricing:
    """Price is per room-stay: guests are recorded but never multiplied in."""

    def __init__(self, max_guests: int = 10):
        self.max_guests = max_guests

    def validate_count(self, hotel: Hotel, count: int) -> int:
        return _check_count(count, self.max_guests, "guests")

    def quote(self, hotel: Hotel, count: int, check_in: DateLike = None, check_out: DateLike = None) -> Quote:
        nights = count_nights(check_in, check_out)
        return Quote(
            amount=hotel.price_per_night * nights,
            description=f"{nights} night(s) stay for {count} guest(s)",
        )


class TourPricing:
    def __init__(self, max_participants: int = 20):
        self.max_participants = max_participants

    def validate_count(self, tour: Tour, count: int) -> int:
        return _check_count(count, min(self.max_participants, tour.max_participants), "participants")

    def quote(self, tour: Tour, count: int, check_in: DateLike = None, check_out: DateLike = None) -> Quote:
        return Quote(
            amount=tour.price_per_person * count,
            description=f"{tour.duration_days} day tour for {count} guest(s)",
        )


class AttractionPricing:
    def __init__(self, max_visitors: int = 50):
        self.max_visitors = max_visitors

    def validate_count(self, attraction: Attraction, count: int) -> int:
        return _check_count(count, self.max_visitors, "visitors")

    def quote(self, attraction: Attraction, count: int, check_in: DateLike = None, check_out: DateLike = None) -> Quote:
        return Quote(
            amount=attraction.entry_fee * count,
            description=f"Entry for {count} guest(s)",
        )


class PricingEngine:
    """
    Computes what a booking costs. The product's type tag picks the pricing
    rules exactly once; everything below works on the chosen variant.
    """

    def __init__(self, max_hotel_guests: int = 10, max_tour_participants: int = 20,
                 max_attraction_visitors: int = 50):
        self.rules = {
            ProductType.HOTEL: HotelPricing(max_hotel_guests),
            ProductType.TOUR: TourPricing(max_tour_participants),
            ProductType.ATTRACTION: AttractionPricing(max_attraction_visitors),
        }

    @classmethod
    def from_settings(cls, settings) -> "PricingEngine":
        return cls(settings.max_hotel_guests, settings.max_tour_participants, settings.max_attraction_visitors)

    def compute_price(self, product, count: int, check_in: DateLike = None, check_out: DateLike = None) -> Quote:
        if product is None:
            raise InvalidProductState("This listing does not exist")
        if not product.bookable:
            raise InvalidProductState(
                f"This {product.product_type} is not available for booking. "
                "Please contact support if you believe this is an error."
            )
        rules = self.rules[ProductType(product.product_type)]
        rules.validate_count(product, count)
        return rules.quote(product, count, check_in, check_out)
