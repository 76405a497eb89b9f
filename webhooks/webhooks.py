import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter()

# both mean the customer finished paying for the session
PAID_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")


@router.post("/webhook/stripe")
async def stripe_webhook(request: Request, stripe_signature: Optional[str] = Header(None),
                         services: Services = Depends(get_services)):
    payload = await request.body()
    event = services.gateway.construct_event(payload, stripe_signature)
    event_type = event.get("type")

    # Handle the event types we care about
    if event_type in PAID_EVENTS:
        session = event["data"]["object"]
        outcome = services.reconciler.apply_checkout_completed(session)
        logger.info("Webhook %s for booking %s (transitioned=%s)", event_type, outcome.booking.id, outcome.transitioned)
        return JSONResponse(content={
            "received": True,
            "booking_id": outcome.booking.id,
            "payment_status": outcome.booking.payment_status.value,
            "booking_status": outcome.booking.booking_status.value,
            "refund_required": outcome.refund_required,
        })

    # Other events can be handled as needed
    logger.debug("Ignoring webhook event %s", event_type)
    return JSONResponse(content={"received": True})
