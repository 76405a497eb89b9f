"""
Run this script to see a full mocked booking flow:
 - seed a tourist, an approved hotel and an approved tour in an in-memory DB
 - start checkout (pending booking + mock checkout session)
 - reconcile before paying -> still pending
 - simulate the customer paying, reconcile twice -> confirmed once
 - print the receipt
"""

from booking_schemas import AuthUser, BookingRequest
from config import Settings, setup_logging
from payments.gateways import MockGateway
from receipts import render_receipt_text
from services import build_services


def main():
    setup_logging("INFO")
    settings = Settings(database_url="sqlite://", payment_env="mock")
    gateway = MockGateway()
    services = build_services(settings, gateway=gateway)
    store = services.store

    tourist = store.insert("profiles", {"email": "amani@example.com", "full_name": "Amani Uwase", "role": "tourist"})
    hotel = store.insert("hotels", {
        "name": "Lake Kivu Serena",
        "location": "Gisenyi",
        "price_per_night": 50000,
        "status": "approved",
    })
    user = AuthUser(id=tourist["id"], email=tourist["email"])

    print("=== Checkout ===")
    start = services.bookings.start_checkout(user, BookingRequest(
        product_type="hotel",
        reference_id=hotel["id"],
        check_in_date="2025-06-01",
        check_out_date="2025-06-04",
        number_of_guests=2,
    ))
    print(f"- booking {start.booking_id}: {start.amount} {start.currency.upper()}, session {start.session_id}")

    print("\n=== Reconcile before payment ===")
    outcome = services.bookings.booking_status(user, start.booking_id)
    print(f"- payment={outcome.booking.payment_status.value} booking={outcome.booking.booking_status.value}")

    # Simulate the customer completing the hosted checkout
    gateway.complete_session(start.session_id)

    print("\n=== Reconcile after payment (twice) ===")
    for _ in range(2):
        outcome = services.bookings.booking_status(user, start.booking_id)
        print(f"- payment={outcome.booking.payment_status.value} booking={outcome.booking.booking_status.value} "
              f"transitioned={outcome.transitioned}")

    print("\n=== Receipt ===")
    for line in render_receipt_text(services.bookings.receipt(user, start.booking_id)):
        print(line)


if __name__ == "__main__":
    main()
