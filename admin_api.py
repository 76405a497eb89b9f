from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from auth import require_admin
from booking_schemas import AuthUser
from services import Services, get_services

router = APIRouter(prefix="/admin/bookings", tags=["admin"])


class ExpireRequest(BaseModel):
    older_than_hours: Optional[int] = Field(default=None, ge=1)


@router.post("/{booking_id}/cancel")
def cancel_booking(booking_id: str, admin: AuthUser = Depends(require_admin),
                   services: Services = Depends(get_services)):
    return services.reconciler.cancel_unpaid(booking_id).model_dump(mode="json")


@router.post("/{booking_id}/complete")
def complete_booking(booking_id: str, admin: AuthUser = Depends(require_admin),
                     services: Services = Depends(get_services)):
    services.records.complete(booking_id)
    return services.records.get(booking_id).model_dump(mode="json")


@router.post("/expire")
def expire_bookings(body: ExpireRequest, admin: AuthUser = Depends(require_admin),
                    services: Services = Depends(get_services)):
    """Cancel abandoned checkouts older than the TTL (reconciling each first)."""
    hours = body.older_than_hours or services.settings.pending_booking_ttl_hours
    expired = services.reconciler.expire_stale(timedelta(hours=hours))
    return {"expired": expired, "count": len(expired)}
