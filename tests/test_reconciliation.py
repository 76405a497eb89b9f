from datetime import timedelta

import pytest

from booking_schemas import BookingRequest, BookingStatus, PaymentStatus, SessionStatus
from errors import Forbidden, InvalidBookingState, NotFound, PaymentProviderUnavailable


@pytest.fixture
def checkout(services, user, hotel):
    return services.bookings.start_checkout(user, BookingRequest(
        product_type="hotel", reference_id=hotel["id"], check_in_date="2025-06-01",
        check_out_date="2025-06-04", number_of_guests=2,
    ))


@pytest.fixture
def count_writes(store, monkeypatch):
    writes = []
    original = store.update_where

    def counting(table, record_id, expected, fields):
        changed = original(table, record_id, expected, fields)
        writes.append((record_id, fields, changed))
        return changed

    monkeypatch.setattr(store, "update_where", counting)
    return writes


def test_unpaid_session_leaves_booking_pending(services, checkout):
    outcome = services.reconciler.sync(checkout.booking_id)
    assert outcome.transitioned is False
    assert outcome.provider_error is None
    assert outcome.booking.payment_status == PaymentStatus.PENDING


def test_paid_session_confirms_booking(services, gateway, checkout):
    session = gateway.complete_session(checkout.session_id)
    booking = services.reconciler.reconcile(checkout.booking_id)
    assert booking.payment_status == PaymentStatus.COMPLETED
    assert booking.booking_status == BookingStatus.CONFIRMED
    assert booking.stripe_payment_intent_id == session["payment_intent"]


def test_reconcile_is_idempotent(services, gateway, checkout, count_writes, email_session):
    gateway.complete_session(checkout.session_id)
    first = services.reconciler.sync(checkout.booking_id)
    assert first.transitioned is True
    writes_after_first = len(count_writes)
    calls_after_first = gateway.retrieve_calls

    for _ in range(5):
        again = services.reconciler.sync(checkout.booking_id)
        assert again.transitioned is False
        assert again.booking == first.booking

    assert len(count_writes) == writes_after_first
    assert gateway.retrieve_calls == calls_after_first
    confirmations = [m for m in email_session.sent if "confirmed" in m["json"]["subject"]]
    assert len(confirmations) == 1


def test_no_session_reference_means_no_provider_call(services, gateway, records_booking):
    booking = services.reconciler.reconcile(records_booking)
    assert booking.payment_status == PaymentStatus.PENDING
    assert gateway.retrieve_calls == 0


@pytest.fixture
def records_booking(services, tourist, hotel):
    return services.records.create_pending_booking(
        tourist["id"], "hotel", hotel["id"], None, None, 1, None, 50000
    )


def test_provider_outage_returns_last_known_state(services, gateway, checkout):
    gateway.complete_session(checkout.session_id)
    gateway.available = False
    outcome = services.reconciler.sync(checkout.booking_id)
    assert outcome.provider_error
    assert outcome.booking.payment_status == PaymentStatus.PENDING

    gateway.available = True
    assert services.reconciler.reconcile(checkout.booking_id).payment_status == PaymentStatus.COMPLETED


def test_unknown_booking(services):
    with pytest.raises(NotFound):
        services.reconciler.reconcile("missing")


def test_interleaved_reconciliations_apply_once(services, gateway, checkout, count_writes, email_session):
    """Second reconcile runs while the first is waiting on the provider."""
    gateway.complete_session(checkout.session_id)
    original = gateway.retrieve_session
    nested = []
    started = []

    def slow_retrieve(session_id):
        status = original(session_id)
        if not started:
            started.append(session_id)
            nested.append(services.reconciler.sync(checkout.booking_id))
        return status

    gateway.retrieve_session = slow_retrieve
    outer = services.reconciler.sync(checkout.booking_id)

    assert nested[0].transitioned is True
    assert outer.transitioned is False
    paid_writes = [w for w in count_writes if w[1].get("payment_status") == "completed" and w[2]]
    assert len(paid_writes) == 1
    assert outer.booking.payment_status == PaymentStatus.COMPLETED
    confirmations = [m for m in email_session.sent if "confirmed" in m["json"]["subject"]]
    assert len(confirmations) == 1


def test_webhook_session_applies_payment(services, gateway, checkout):
    session = gateway.complete_session(checkout.session_id)
    outcome = services.reconciler.apply_checkout_completed(session)
    assert outcome.transitioned is True
    assert outcome.booking.booking_status == BookingStatus.CONFIRMED
    # a later page view does not touch it again
    assert services.reconciler.sync(checkout.booking_id).transitioned is False


def test_webhook_for_replaced_session_still_counts(services, gateway, checkout):
    old_session = gateway.complete_session(checkout.session_id)
    services.records.attach_checkout_session(checkout.booking_id, "cs_replacement")
    outcome = services.reconciler.apply_checkout_completed(old_session)
    assert outcome.booking.payment_status == PaymentStatus.COMPLETED


def test_webhook_user_mismatch_rejected(services, gateway, checkout):
    session = gateway.complete_session(checkout.session_id)
    session["metadata"] = {"booking_id": checkout.booking_id, "user_id": "someone-else"}
    with pytest.raises(Forbidden):
        services.reconciler.apply_checkout_completed(session)


def test_webhook_without_booking_metadata(services):
    with pytest.raises(NotFound):
        services.reconciler.apply_checkout_completed({"id": "cs_x", "payment_status": "paid", "metadata": {}})


def test_expire_stale_cancels_abandoned_checkout(services, checkout, age_booking):
    age_booking(checkout.booking_id, hours=30)
    expired = services.reconciler.expire_stale(timedelta(hours=24))
    assert expired == [checkout.booking_id]
    booking = services.records.get(checkout.booking_id)
    assert booking.booking_status == BookingStatus.CANCELLED
    assert booking.payment_status == PaymentStatus.FAILED


def test_expire_stale_keeps_late_payment(services, gateway, checkout, age_booking):
    age_booking(checkout.booking_id, hours=30)
    gateway.complete_session(checkout.session_id)
    assert services.reconciler.expire_stale(timedelta(hours=24)) == []
    assert services.records.get(checkout.booking_id).booking_status == BookingStatus.CONFIRMED


def test_expire_stale_skips_recent_and_unknown_provider_state(services, gateway, checkout, age_booking):
    assert services.reconciler.expire_stale(timedelta(hours=24)) == []
    age_booking(checkout.booking_id, hours=30)
    gateway.available = False
    assert services.reconciler.expire_stale(timedelta(hours=24)) == []
    assert services.records.get(checkout.booking_id).booking_status == BookingStatus.PENDING


def test_custom_provider_status_object(services, checkout, monkeypatch):
    monkeypatch.setattr(services.broker, "retrieve_session",
                        lambda session_id: SessionStatus(paid=True, payment_intent_id="pi_custom"))
    booking = services.reconciler.reconcile(checkout.booking_id)
    assert booking.stripe_payment_intent_id == "pi_custom"


def test_expire_stale_closes_checkout_session(services, gateway, checkout, age_booking):
    age_booking(checkout.booking_id, hours=30)
    assert services.reconciler.expire_stale(timedelta(hours=24)) == [checkout.booking_id]
    assert gateway.sessions[checkout.session_id]["status"] == "expired"
    with pytest.raises(ValueError):
        gateway.complete_session(checkout.session_id)


def test_expire_stale_keeps_booking_paid_while_closing(services, gateway, checkout, age_booking, monkeypatch):
    age_booking(checkout.booking_id, hours=30)
    expire = gateway.expire_session

    def paid_first(session_id):
        gateway.complete_session(session_id)
        return expire(session_id)

    monkeypatch.setattr(gateway, "expire_session", paid_first)
    assert services.reconciler.expire_stale(timedelta(hours=24)) == []
    booking = services.records.get(checkout.booking_id)
    assert booking.booking_status == BookingStatus.CONFIRMED
    assert booking.payment_status == PaymentStatus.COMPLETED


def test_expire_stale_skips_session_that_cannot_be_closed(services, gateway, checkout, age_booking, monkeypatch):
    age_booking(checkout.booking_id, hours=30)

    def offline(session_id):
        raise PaymentProviderUnavailable("Mock payment provider is offline")

    monkeypatch.setattr(gateway, "expire_session", offline)
    assert services.reconciler.expire_stale(timedelta(hours=24)) == []
    assert services.records.get(checkout.booking_id).booking_status == BookingStatus.PENDING


def test_payment_for_cancelled_booking_flagged_for_refund(services, gateway, checkout, email_session):
    # cancelled without closing the session, the customer still pays it
    services.records.cancel(checkout.booking_id)
    session = gateway.complete_session(checkout.session_id)

    outcome = services.reconciler.apply_checkout_completed(session)
    assert outcome.refund_required is True
    assert outcome.transitioned is False
    assert outcome.booking.booking_status == BookingStatus.CANCELLED
    assert outcome.booking.payment_status == PaymentStatus.FAILED
    assert outcome.booking.stripe_payment_intent_id == session["payment_intent"]
    assert not [m for m in email_session.sent if "confirmed" in m["json"]["subject"]]

    # a redelivery answers the same way
    assert services.reconciler.apply_checkout_completed(session).refund_required is True


def test_booking_cancelled_during_webhook_flagged_for_refund(services, gateway, checkout, monkeypatch):
    session = gateway.complete_session(checkout.session_id)
    mark_paid = services.records.mark_paid

    def cancelled_first(booking_id, payment_intent_id):
        services.records.cancel(booking_id)
        return mark_paid(booking_id, payment_intent_id)

    monkeypatch.setattr(services.records, "mark_paid", cancelled_first)
    outcome = services.reconciler.apply_checkout_completed(session)
    assert outcome.refund_required is True
    assert outcome.booking.booking_status == BookingStatus.CANCELLED
    assert outcome.booking.stripe_payment_intent_id == session["payment_intent"]


def test_cancel_unpaid_closes_session(services, gateway, checkout):
    booking = services.reconciler.cancel_unpaid(checkout.booking_id)
    assert booking.booking_status == BookingStatus.CANCELLED
    assert gateway.sessions[checkout.session_id]["status"] == "expired"


def test_cancel_unpaid_refuses_paid_booking(services, gateway, checkout, monkeypatch):
    expire = gateway.expire_session

    def paid_first(session_id):
        gateway.complete_session(session_id)
        return expire(session_id)

    monkeypatch.setattr(gateway, "expire_session", paid_first)
    with pytest.raises(InvalidBookingState):
        services.reconciler.cancel_unpaid(checkout.booking_id)
    assert services.records.get(checkout.booking_id).booking_status == BookingStatus.CONFIRMED
