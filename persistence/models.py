import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey
from .db import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    # naive UTC, SQLite drops tzinfo anyway
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class ProfileModel(TimestampMixin, Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), index=True)
    full_name = Column(String(255))
    phone = Column(String(32), nullable=True)
    role = Column(String(16), default="tourist", nullable=False)


class HotelModel(TimestampMixin, Base):
    __tablename__ = "hotels"

    id = Column(String(36), primary_key=True, default=new_id)
    provider_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    location = Column(String(255))
    price_per_night = Column(Integer, nullable=False)
    available_rooms = Column(Integer, default=0)
    status = Column(String(16), default="pending", nullable=False)


class TourModel(TimestampMixin, Base):
    __tablename__ = "tours"

    id = Column(String(36), primary_key=True, default=new_id)
    provider_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    duration_days = Column(Integer, default=1, nullable=False)
    max_participants = Column(Integer, nullable=False)
    price_per_person = Column(Integer, nullable=False)
    status = Column(String(16), default="pending", nullable=False)


class AttractionModel(TimestampMixin, Base):
    __tablename__ = "attractions"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    category = Column(String(32))
    location = Column(String(255))
    entry_fee = Column(Integer, nullable=False)


class BookingModel(TimestampMixin, Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    booking_type = Column(String(16), nullable=False)
    reference_id = Column(String(36), index=True, nullable=False)
    check_in_date = Column(Date, nullable=True)
    check_out_date = Column(Date, nullable=True)
    number_of_guests = Column(Integer, default=1, nullable=False)
    total_amount = Column(Integer, nullable=False)   # smallest currency unit
    currency = Column(String(8), nullable=False)
    special_requests = Column(Text, nullable=True)
    stripe_session_id = Column(String(255), nullable=True, index=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    payment_status = Column(String(16), default="pending", nullable=False)
    booking_status = Column(String(16), default="pending", nullable=False)
