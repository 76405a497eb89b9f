"""
Explore Rwanda booking & payment API.

Run with: uvicorn app:create_app --factory
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import admin_api
import bookings_api
from config import Settings, setup_logging
from errors import BookingError, IllegalTransition
from services import Services, build_services
from webhooks import webhooks

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or (services.settings if services else Settings.from_env())
    setup_logging(settings.log_level)

    app = FastAPI(title="Explore Rwanda Bookings")
    # initialize DB (creates tables) and payment provider
    app.state.services = services or build_services(settings)

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        if isinstance(exc, IllegalTransition):
            logger.error("Integrity error on %s %s: %s", request.method, request.url.path, exc.message)
        content = {"error": exc.message}
        booking_id = getattr(exc, "booking_id", None)
        if booking_id:
            content["booking_id"] = booking_id
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.get("/health")
    def health():
        return {"status": "healthy", "service": "bookings", "payment_provider": app.state.services.gateway.name}

    app.include_router(bookings_api.router)
    app.include_router(admin_api.router)
    app.include_router(webhooks.router)
    return app
