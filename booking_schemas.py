from datetime import date, datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ProductType(str, Enum):
    HOTEL = "hotel"
    TOUR = "tour"
    ATTRACTION = "attraction"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# --- Bookable products (read-only for the booking flow) ---

class Hotel(BaseModel):
    product_type: Literal["hotel"] = "hotel"
    id: str
    name: str
    description: str = ""
    location: Optional[str] = None
    price_per_night: int = Field(ge=0)   # smallest currency unit
    status: ApprovalStatus = ApprovalStatus.PENDING

    @property
    def bookable(self) -> bool:
        return self.status == ApprovalStatus.APPROVED


class Tour(BaseModel):
    product_type: Literal["tour"] = "tour"
    id: str
    name: str
    description: str = ""
    duration_days: int = Field(default=1, ge=1)
    max_participants: int = Field(ge=1)
    price_per_person: int = Field(ge=0)
    status: ApprovalStatus = ApprovalStatus.PENDING

    @property
    def bookable(self) -> bool:
        return self.status == ApprovalStatus.APPROVED


class Attraction(BaseModel):
    # attractions are admin-curated, no approval step
    product_type: Literal["attraction"] = "attraction"
    id: str
    name: str
    description: str = ""
    location: Optional[str] = None
    entry_fee: int = Field(ge=0)

    @property
    def bookable(self) -> bool:
        return True


BookableProduct = Annotated[Union[Hotel, Tour, Attraction], Field(discriminator="product_type")]

# table holding each product variant
PRODUCT_TABLES = {
    ProductType.HOTEL: "hotels",
    ProductType.TOUR: "tours",
    ProductType.ATTRACTION: "attractions",
}


# --- Booking ---

class Booking(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    booking_type: ProductType
    reference_id: str
    check_in_date: Optional[date] = None    # start / visit date for tours and attractions
    check_out_date: Optional[date] = None
    number_of_guests: int = Field(default=1, ge=1)
    total_amount: int = Field(ge=0)         # smallest currency unit
    currency: str = "rwf"
    special_requests: Optional[str] = None
    stripe_session_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    booking_status: BookingStatus = BookingStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingRequest(BaseModel):
    """What the tourist submits from a hotel/tour/attraction booking form."""
    product_type: ProductType
    reference_id: str
    check_in_date: Optional[str] = None
    check_out_date: Optional[str] = None
    number_of_guests: int = 1
    special_requests: Optional[str] = Field(default=None, max_length=2000)


class Quote(BaseModel):
    amount: int = Field(ge=0)
    description: str


# --- Payment provider views ---

class CheckoutSession(BaseModel):
    session_id: str
    client_secret: Optional[str] = None
    url: Optional[str] = None


class SessionStatus(BaseModel):
    paid: bool
    payment_intent_id: Optional[str] = None


class CheckoutStart(BaseModel):
    booking_id: str
    session_id: str
    client_secret: Optional[str] = None
    amount: int
    currency: str


class ReconcileOutcome(BaseModel):
    booking: Booking
    transitioned: bool = False
    provider_error: Optional[str] = None
    # paid after the booking was closed; the charge has to be refunded by hand
    refund_required: bool = False


# --- Users ---

class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None


class Profile(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: str = "tourist"


# --- Receipt ---

class ReceiptLine(BaseModel):
    label: str
    value: str


class ReceiptView(BaseModel):
    reference: str
    booking_type: str
    item_name: str
    location: str
    booking_status: str
    payment_status: str
    customer_name: str
    customer_email: str
    customer_phone: str
    details: List[ReceiptLine] = Field(default_factory=list)
    special_requests: Optional[str] = None
    total: str
    booked_on: str
