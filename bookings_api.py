from fastapi import APIRouter, Depends
from fastapi.responses import Response

from auth import require_user
from booking_schemas import AuthUser, BookingRequest
from services import Services, get_services

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/checkout", status_code=201)
def start_checkout(body: BookingRequest, user: AuthUser = Depends(require_user),
                   services: Services = Depends(get_services)):
    """Create a pending booking and the embedded checkout session paying for it."""
    return services.bookings.start_checkout(user, body).model_dump()


@router.post("/{booking_id}/checkout", status_code=201)
def retry_checkout(booking_id: str, user: AuthUser = Depends(require_user),
                   services: Services = Depends(get_services)):
    return services.bookings.retry_checkout(user, booking_id).model_dump()


@router.get("")
def list_bookings(user: AuthUser = Depends(require_user), services: Services = Depends(get_services)):
    bookings = services.bookings.list_bookings(user)
    return {"bookings": [b.model_dump(mode="json") for b in bookings], "total": len(bookings)}


@router.get("/{booking_id}/status")
def booking_status(booking_id: str, user: AuthUser = Depends(require_user),
                   services: Services = Depends(get_services)):
    """Return-redirect target: reconciles with the payment provider, falls back to last known state."""
    return services.bookings.booking_status(user, booking_id).model_dump(mode="json")


@router.get("/{booking_id}/receipt")
def receipt(booking_id: str, user: AuthUser = Depends(require_user), services: Services = Depends(get_services)):
    return services.bookings.receipt(user, booking_id).model_dump()


@router.get("/{booking_id}/receipt.pdf")
def receipt_pdf(booking_id: str, user: AuthUser = Depends(require_user),
                services: Services = Depends(get_services)):
    content = services.bookings.receipt_pdf(user, booking_id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="receipt-{booking_id[:8]}.pdf"'},
    )
