"""
Payment provider integrations.
StripeGateway talks to Stripe Checkout (embedded mode); MockGateway keeps
sessions in memory for local development and demos (PAYMENT_ENV=mock).
"""
import json
import logging
import uuid
from typing import Dict, Optional

import stripe

from booking_schemas import CheckoutSession, SessionStatus
from errors import PaymentProviderUnavailable, Unauthorized

logger = logging.getLogger(__name__)


class PaymentGateway:
    """Base class for payment providers"""

    name = "base"

    def create_session(self, amount_minor_units: int, currency: str, product_name: str,
                       product_description: str, success_return_url: str, metadata: Dict[str, str]) -> CheckoutSession:
        raise NotImplementedError

    def retrieve_session(self, session_id: str) -> SessionStatus:
        raise NotImplementedError

    def expire_session(self, session_id: str) -> bool:
        """
        Close an open session so it can no longer be paid. True once the session
        is expired (also when it already was), False if the customer already paid it.
        """
        raise NotImplementedError

    def construct_event(self, payload: bytes, signature: Optional[str]) -> dict:
        """Verify a webhook delivery and return the event as a plain dict."""
        raise NotImplementedError


def payment_intent_id_of(intent) -> Optional[str]:
    # payment_intent is an id string unless the caller asked Stripe to expand it
    if intent is None or isinstance(intent, str):
        return intent
    return getattr(intent, "id", None)


class StripeGateway(PaymentGateway):
    name = "stripe"

    def __init__(self, api_key: Optional[str], webhook_secret: Optional[str] = None):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def _require_key(self):
        if not self.api_key:
            raise PaymentProviderUnavailable(
                "Stripe is not configured. Please set STRIPE_SECRET_KEY environment variable."
            )

    def create_session(self, amount_minor_units, currency, product_name, product_description,
                       success_return_url, metadata):
        self._require_key()
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                ui_mode="embedded",
                line_items=[{
                    "price_data": {
                        "currency": currency.lower(),
                        "product_data": {
                            "name": product_name[:250],
                            "description": product_description,
                        },
                        # Stripe expects the smallest currency unit
                        "unit_amount": amount_minor_units,
                    },
                    "quantity": 1,
                }],
                mode="payment",
                return_url=success_return_url,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.warning("Stripe session creation failed: %s", e)
            raise PaymentProviderUnavailable(f"Payment provider error: {e}") from e
        return CheckoutSession(
            session_id=session.id,
            client_secret=getattr(session, "client_secret", None),
            url=getattr(session, "url", None),
        )

    def retrieve_session(self, session_id):
        self._require_key()
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.warning("Stripe session lookup failed for %s: %s", session_id, e)
            raise PaymentProviderUnavailable(f"Payment provider error: {e}") from e
        return SessionStatus(
            paid=getattr(session, "payment_status", None) == "paid",
            payment_intent_id=payment_intent_id_of(getattr(session, "payment_intent", None)),
        )

    def expire_session(self, session_id):
        self._require_key()
        try:
            stripe.checkout.Session.expire(session_id, api_key=self.api_key)
            return True
        except stripe.InvalidRequestError as e:
            # only open sessions can be expired, see where this one ended up
            try:
                session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
            except stripe.StripeError as lookup_error:
                raise PaymentProviderUnavailable(f"Payment provider error: {lookup_error}") from lookup_error
            status = getattr(session, "status", None)
            if status == "expired":
                return True
            if status == "complete":
                return False
            logger.warning("Stripe refused to expire session %s (status %s): %s", session_id, status, e)
            raise PaymentProviderUnavailable(f"Payment provider error: {e}") from e
        except stripe.StripeError as e:
            logger.warning("Stripe session expiry failed for %s: %s", session_id, e)
            raise PaymentProviderUnavailable(f"Payment provider error: {e}") from e

    def construct_event(self, payload, signature):
        if not self.webhook_secret:
            raise Unauthorized("Webhook secret is not configured")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8") if isinstance(payload, bytes) else payload,
                signature or "",
                self.webhook_secret,
            )
        except stripe.SignatureVerificationError as e:
            raise Unauthorized("Invalid Stripe signature") from e
        return json.loads(payload)


class MockGateway(PaymentGateway):
    """In-memory stand-in with Stripe-shaped session ids and statuses."""

    name = "mock"

    def __init__(self):
        self.sessions: Dict[str, dict] = {}
        self.available = True
        self.retrieve_calls = 0

    def _check_available(self):
        if not self.available:
            raise PaymentProviderUnavailable("Mock payment provider is offline")

    def create_session(self, amount_minor_units, currency, product_name, product_description,
                       success_return_url, metadata):
        self._check_available()
        session_id = f"cs_test_{uuid.uuid4().hex}"
        self.sessions[session_id] = {
            "id": session_id,
            "object": "checkout.session",
            "amount_total": amount_minor_units,
            "currency": currency.lower(),
            "name": product_name,
            "description": product_description,
            "metadata": dict(metadata),
            "status": "open",
            "payment_status": "unpaid",
            "payment_intent": None,
            "return_url": success_return_url.replace("{CHECKOUT_SESSION_ID}", session_id),
        }
        return CheckoutSession(session_id=session_id, client_secret=f"{session_id}_secret_mock")

    def complete_session(self, session_id: str) -> dict:
        """Simulate the customer paying; returns the session as a webhook would carry it."""
        session = self.sessions[session_id]
        if session["status"] == "expired":
            raise ValueError(f"Checkout session {session_id} has expired")
        session["status"] = "complete"
        session["payment_status"] = "paid"
        session["payment_intent"] = session["payment_intent"] or f"pi_mock_{uuid.uuid4().hex[:16]}"
        return dict(session)

    def expire_session(self, session_id):
        self._check_available()
        session = self.sessions.get(session_id)
        if session is None:
            raise PaymentProviderUnavailable(f"No such checkout session: {session_id}")
        if session["status"] == "complete":
            return False
        session["status"] = "expired"
        return True

    def retrieve_session(self, session_id):
        self._check_available()
        self.retrieve_calls += 1
        session = self.sessions.get(session_id)
        if session is None:
            raise PaymentProviderUnavailable(f"No such checkout session: {session_id}")
        return SessionStatus(paid=session["payment_status"] == "paid", payment_intent_id=session["payment_intent"])

    def construct_event(self, payload, signature):
        return json.loads(payload)


def get_gateway(settings) -> PaymentGateway:
    """Factory: pick the payment provider from PAYMENT_ENV."""
    env = (settings.payment_env or "mock").lower()
    if env == "stripe":
        return StripeGateway(settings.stripe_secret_key, settings.stripe_webhook_secret)
    if env == "mock":
        return MockGateway()
    raise ValueError(f"Unknown payment environment: {settings.payment_env}")
