import threading
from datetime import date, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

import booking_policy
from booking_policy import InvalidTransition
from conftest import CARD, PASSENGER
from models import Booking, BookingStatus, Payment, PaymentStatus, User, db
from payment_simulator import PaymentSimulator, pay_for_booking


@pytest.fixture
def pending_booking(client, user, make_flight):
    user_id, headers = user
    flight_id = make_flight(price=5400.0)
    response = client.post("/api/bookings", headers=headers,
                           json={"flight_id": flight_id, "passengers": [PASSENGER]})
    return response.get_json()["booking"]["id"], headers


def pay(client, headers, booking_id, card=CARD):
    return client.post("/api/payments", headers=headers, json={"booking_id": booking_id, "card": card})


def test_successful_payment_confirms_booking(client, pending_booking):
    booking_id, headers = pending_booking

    response = pay(client, headers, booking_id)

    assert response.status_code == 201
    body = response.get_json()
    assert body["booking"]["status"] == "confirmed"
    assert body["payment"]["status"] == "succeeded"
    assert body["payment"]["amount"] == 5400.0
    assert body["payment"]["currency"] == "INR"
    assert body["payment"]["transaction_id"].startswith("pi_")

    payments = Payment.query.filter_by(booking_id=booking_id).all()
    assert [p.status for p in payments] == [PaymentStatus.SUCCEEDED]


def test_declined_payment_keeps_booking_pending(client, app, pending_booking):
    booking_id, headers = pending_booking
    app.config["PAYMENT_SUCCESS_RATE"] = 0.0

    response = pay(client, headers, booking_id)

    assert response.status_code == 402
    assert response.get_json()["payment"]["status"] == "failed"
    assert db.session.get(Booking, booking_id).status == BookingStatus.PENDING
    assert [p.status for p in Payment.query.all()] == [PaymentStatus.FAILED]

    # A retry after a decline may still succeed
    app.config["PAYMENT_SUCCESS_RATE"] = 1.0
    assert pay(client, headers, booking_id).status_code == 201
    assert Payment.query.filter_by(status=PaymentStatus.SUCCEEDED).count() == 1


def test_payment_and_confirmation_are_atomic(client, monkeypatch, pending_booking):
    booking_id, headers = pending_booking

    def broken_confirm(booking):
        raise OperationalError("UPDATE bookings", {}, Exception("disk I/O error"))

    monkeypatch.setattr(booking_policy, "confirm", broken_confirm)

    response = pay(client, headers, booking_id)

    assert response.status_code == 500
    assert "booking was not confirmed" in response.get_json()["error"]
    assert Payment.query.count() == 0
    assert db.session.get(Booking, booking_id).status == BookingStatus.PENDING


def test_paid_booking_cannot_be_paid_again(client, pending_booking):
    booking_id, headers = pending_booking
    pay(client, headers, booking_id)

    response = pay(client, headers, booking_id)

    assert response.status_code == 409
    assert response.get_json()["error"] == "Booking has already been paid for."
    assert Payment.query.count() == 1


def test_cancelled_booking_cannot_be_paid(client, pending_booking):
    booking_id, headers = pending_booking
    client.post(f"/api/bookings/{booking_id}/cancel", headers=headers)

    assert pay(client, headers, booking_id).status_code == 409
    assert Payment.query.count() == 0


def test_card_is_validated(client, pending_booking):
    booking_id, headers = pending_booking

    short = pay(client, headers, booking_id, card={**CARD, "number": "4111 1111"})
    assert short.status_code == 400

    last_year = {**CARD, "expiry_year": date.today().year - 1}
    assert pay(client, headers, booking_id, card=last_year).status_code == 400
    assert Payment.query.count() == 0


def test_cannot_pay_for_someone_elses_booking(client, register, pending_booking):
    booking_id, _ = pending_booking
    _, other_headers = register()
    assert pay(client, other_headers, booking_id).status_code == 404


def test_reconcile_confirms_booking_with_recorded_payment(client, pending_booking):
    booking_id, headers = pending_booking
    booking = db.session.get(Booking, booking_id)
    db.session.add(Payment(booking=booking, user_id=booking.user_id, transaction_id="pi_stranded",
                           amount=booking.amount, status=PaymentStatus.SUCCEEDED))
    db.session.commit()

    response = client.post(f"/api/bookings/{booking_id}/reconcile", headers=headers)

    assert response.get_json()["repaired"] is True
    assert response.get_json()["booking"]["status"] == "confirmed"

    again = client.post(f"/api/bookings/{booking_id}/reconcile", headers=headers)
    assert again.get_json()["repaired"] is False


def test_payment_listings(client, user, pending_booking, admin_headers):
    booking_id, headers = pending_booking
    user_id = user[0]
    payment_id = pay(client, headers, booking_id).get_json()["payment"]["id"]

    assert [p["id"] for p in client.get(f"/api/payments/user/{user_id}", headers=headers).get_json()] == [payment_id]
    assert len(client.get(f"/api/payments/booking/{booking_id}", headers=headers).get_json()) == 1
    assert client.get(f"/api/payments/{payment_id}", headers=headers).status_code == 200
    assert client.get(f"/api/payments/{payment_id}", headers=admin_headers).status_code == 200
    assert client.get("/api/payments/9999", headers=headers).status_code == 404


def test_overlapping_payments_confirm_once(tmp_path):
    # Separate connections per thread need a file database
    engine = create_engine(f"sqlite:///{tmp_path / 'payments.db'}",
                           connect_args={"check_same_thread": False, "timeout": 30})
    db.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)

    with Session() as session:
        owner = User(name="Asha Rao", email="asha@example.com", phone="9876500001", password_hash="x")
        booking = Booking(owner=owner, flight_number="6E101", flight_date=date.today() + timedelta(days=10),
                          amount=5400.0, status=BookingStatus.PENDING)
        session.add(booking)
        session.commit()
        booking_id, owner_id = booking.id, owner.id

    # Both requests pass the pending check, then meet inside the gateway delay
    barrier = threading.Barrier(2, timeout=10)
    outcomes = []

    def attempt():
        simulator = PaymentSimulator(success_rate=1.0, delay=1, sleep=lambda _: barrier.wait())
        with Session() as session:
            try:
                pay_for_booking(session, session.get(Booking, booking_id), owner_id, simulator)
                outcomes.append("paid")
            except InvalidTransition:
                outcomes.append("refused")

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(outcomes) == ["paid", "refused"]
    with Session() as session:
        assert session.query(Payment).filter_by(status=PaymentStatus.SUCCEEDED).count() == 1
        assert session.get(Booking, booking_id).status == BookingStatus.CONFIRMED
    engine.dispose()
