from typing import Optional

import requests
from fastapi import Request

from booking_manager import BookingRecordManager
from booking_service import BookingService
from config import Settings
from notifications import BookingNotifier, EmailSender
from payments.checkout import CheckoutSessionBroker
from payments.gateways import PaymentGateway, get_gateway
from persistence.db import init_db, make_engine, make_session_factory
from persistence.store import Store
from pricing import PricingEngine
from retry import RetryPolicy


class Services:
    """Everything a request handler needs, wired once per application."""

    def __init__(self, settings: Settings, store: Store, gateway: PaymentGateway,
                 email_session: Optional[requests.Session] = None):
        self.settings = settings
        self.store = store
        self.gateway = gateway
        self.records = BookingRecordManager(store, currency=settings.currency)
        self.broker = CheckoutSessionBroker(gateway, settings.return_url_template)
        self.notifier = BookingNotifier(
            EmailSender(settings.resend_api_key, settings.email_from, session=email_session)
        )
        self.bookings = BookingService(
            store=store,
            records=self.records,
            pricing=PricingEngine.from_settings(settings),
            broker=self.broker,
            notifier=self.notifier,
            profile_reads=RetryPolicy(settings.profile_fetch_attempts, settings.profile_fetch_delay),
        )
        self.reconciler = self.bookings.reconciler


def build_services(settings: Settings, gateway: Optional[PaymentGateway] = None) -> Services:
    engine = make_engine(settings.database_url)
    init_db(engine)
    store = Store(make_session_factory(engine))
    return Services(settings, store, gateway or get_gateway(settings))


def get_services(request: Request) -> Services:
    return request.app.state.services
