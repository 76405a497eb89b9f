from datetime import date, datetime

from booking_schemas import Attraction, Booking, Hotel, Profile, Tour
from payments.currency import format_amount
from receipts import build_receipt, render_receipt_pdf, render_receipt_text


def make_booking(**kw):
    fields = {
        "id": "3f2a9c1e-0000-4000-8000-000000000000",
        "user_id": "u1",
        "booking_type": "hotel",
        "reference_id": "h1",
        "check_in_date": date(2025, 6, 1),
        "check_out_date": date(2025, 6, 4),
        "number_of_guests": 2,
        "total_amount": 150000,
        "currency": "rwf",
        "payment_status": "completed",
        "booking_status": "confirmed",
        "created_at": datetime(2025, 5, 20, 9, 30),
    }
    fields.update(kw)
    return Booking(**fields)


def test_hotel_receipt():
    hotel = Hotel(id="h1", name="Lake Kivu Serena", location="Gisenyi", price_per_night=50000, status="approved")
    profile = Profile(id="u1", email="amani@example.com", full_name="Amani Uwase")
    view = build_receipt(make_booking(special_requests="Lake view"), hotel, profile)

    assert view.reference == "3F2A9C1E"
    assert view.booking_type == "Hotel"
    assert view.item_name == "Lake Kivu Serena"
    assert view.booking_status == "Confirmed"
    assert view.total == "RWF 150,000"
    assert view.customer_phone == "N/A"
    assert [(line.label, line.value) for line in view.details] == [
        ("Check-in", "01 Jun 2025"),
        ("Check-out", "04 Jun 2025"),
        ("Guests", "2"),
    ]
    assert view.booked_on == "20 May 2025 09:30"
    assert view.special_requests == "Lake view"


def test_tour_and_attraction_detail_lines():
    tour = Tour(id="t1", name="Gorilla Trekking", max_participants=10, price_per_person=120000)
    view = build_receipt(make_booking(booking_type="tour", check_out_date=None, number_of_guests=4), tour)
    assert [line.label for line in view.details] == ["Start Date", "Participants"]

    attraction = Attraction(id="a1", name="Memorial", entry_fee=5000)
    view = build_receipt(make_booking(booking_type="attraction", check_in_date=None, check_out_date=None), attraction)
    assert [(line.label, line.value) for line in view.details] == [("Visit Date", "N/A"), ("Visitors", "2")]


def test_missing_inputs_render_placeholders():
    view = build_receipt(make_booking(created_at=None, check_in_date=None, check_out_date=None))
    assert view.item_name == "N/A"
    assert view.location == "N/A"
    assert view.customer_name == "N/A"
    assert view.customer_email == "N/A"
    assert view.booked_on == "N/A"
    assert view.details[0].value == "N/A"


def test_text_and_pdf_rendering():
    view = build_receipt(make_booking(special_requests="Airport pickup"))
    lines = render_receipt_text(view)
    assert "Total Amount Paid: RWF 150,000" in lines
    assert "Airport pickup" in lines
    pdf = render_receipt_pdf(view)
    assert pdf.startswith(b"%PDF")


def test_format_amount_uses_minor_units():
    assert format_amount(150000, "rwf") == "RWF 150,000"
    assert format_amount(123450, "usd") == "USD 1,234.50"
    assert format_amount(5, "eur") == "EUR 0.05"
    assert format_amount(1000, "xyz") == "XYZ 10.00"
