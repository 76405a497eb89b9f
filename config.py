import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel
from typing import Optional

# Make sure you have a .env file with STRIPE_SECRET_KEY etc. for real payments
load_dotenv()

RETURN_PATH = "/booking-success?session_id={CHECKOUT_SESSION_ID}&booking_id={booking_id}"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseModel):
    database_url: str = "sqlite:///./bookings.db"
    payment_env: str = "mock"  # "stripe" or "mock"
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    site_url: str = "http://localhost:3000"
    currency: str = "rwf"
    resend_api_key: Optional[str] = None
    email_from: str = "Explore Rwanda <onboarding@resend.dev>"
    log_level: str = "INFO"

    # guest / participant / visitor caps per product type
    max_hotel_guests: int = 10
    max_tour_participants: int = 20
    max_attraction_visitors: int = 50

    pending_booking_ttl_hours: int = 24
    profile_fetch_attempts: int = 3
    profile_fetch_delay: float = 0.5

    @property
    def return_url_template(self) -> str:
        return self.site_url.rstrip("/") + RETURN_PATH

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            payment_env=os.getenv("PAYMENT_ENV", defaults.payment_env).lower(),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
            site_url=os.getenv("SITE_URL", defaults.site_url),
            currency=os.getenv("CURRENCY", defaults.currency).lower(),
            resend_api_key=os.getenv("RESEND_API_KEY") or None,
            email_from=os.getenv("EMAIL_FROM", defaults.email_from),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            max_hotel_guests=int(os.getenv("MAX_HOTEL_GUESTS", defaults.max_hotel_guests)),
            max_tour_participants=int(os.getenv("MAX_TOUR_PARTICIPANTS", defaults.max_tour_participants)),
            max_attraction_visitors=int(os.getenv("MAX_ATTRACTION_VISITORS", defaults.max_attraction_visitors)),
            pending_booking_ttl_hours=int(os.getenv("PENDING_BOOKING_TTL_HOURS", defaults.pending_booking_ttl_hours)),
            profile_fetch_attempts=int(os.getenv("PROFILE_FETCH_ATTEMPTS", defaults.profile_fetch_attempts)),
            profile_fetch_delay=float(os.getenv("PROFILE_FETCH_DELAY", defaults.profile_fetch_delay)),
        )


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)
