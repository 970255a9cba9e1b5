import os
from datetime import date, time, timedelta

# Configure the app for tests before it is imported
os.environ["FLYNEST_DATABASE_URL"] = "sqlite://"
os.environ["FLYNEST_BCRYPT_LOG_ROUNDS"] = "4"
os.environ["FLYNEST_PAYMENT_DELAY_SECONDS"] = "0"
os.environ["FLYNEST_LOG_LEVEL"] = "WARNING"

import pytest

from app import app as flask_app
from auth import hash_password
from models import Admin, Booking, BookingStatus, Flight, Passenger, db


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True, PAYMENT_SUCCESS_RATE=1.0, PAYMENT_DELAY_SECONDS=0)
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register(client):
    counter = {"n": 0}

    def _register(name="Asha Rao", email=None, phone=None, password="secret123"):
        counter["n"] += 1
        n = counter["n"]
        response = client.post("/api/auth/register", json={
            "name": name,
            "email": email or f"user{n}@example.com",
            "phone": phone or f"98765{n:05d}",
            "password": password,
        })
        assert response.status_code == 201, response.get_json()
        body = response.get_json()
        return body["user"]["id"], bearer(body["token"])

    return _register


@pytest.fixture
def user(register):
    return register()


@pytest.fixture
def admin_headers(client, app):
    db.session.add(Admin(username="root", email="admin@flynest.in",
                         password_hash=hash_password("adminpass"), admin_name="Root"))
    db.session.commit()
    response = client.post("/api/auth/admin-login",
                           json={"email": "admin@flynest.in", "password": "adminpass"})
    assert response.status_code == 200
    return bearer(response.get_json()["token"])


@pytest.fixture
def make_flight(app):
    def _make_flight(days_ahead=10, price=5000.0, status="Scheduled", number="6E101",
                     departure="Indira Gandhi International Airport (DEL)",
                     arrival="Chhatrapati Shivaji Maharaj International Airport (BOM)",
                     departs=time(9, 0), arrives=time(11, 15)):
        flight = Flight(
            flight_date=date.today() + timedelta(days=days_ahead),
            flight_status=status,
            departure_airport=departure,
            arrival_airport=arrival,
            departure_time=departs,
            arrival_time=arrives,
            airline_name="IndiGo",
            airline_iata="6E",
            flight_number=number,
            price=price,
        )
        db.session.add(flight)
        db.session.commit()
        return flight.id

    return _make_flight


@pytest.fixture
def make_booking(app):
    """Inserts a booking directly, bypassing payment, for policy tests."""
    def _make_booking(user_id, days_ahead, status=BookingStatus.CONFIRMED, booking_id=None, amount=5000.0):
        booking = Booking(
            id=booking_id,
            user_id=user_id,
            flight_number="6E101",
            departure_city="Delhi",
            arrival_city="Mumbai",
            flight_date=date.today() + timedelta(days=days_ahead),
            amount=amount,
            status=status,
        )
        booking.passengers.append(Passenger(full_name="Asha Rao", gender="female",
                                            birthdate=date(1990, 5, 17), passport_number="123456789012"))
        db.session.add(booking)
        db.session.commit()
        return booking.id

    return _make_booking


PASSENGER = {
    "full_name": "Asha Rao",
    "gender": "female",
    "birthdate": "1990-05-17",
    "passport_number": "123456789012",
}

CARD = {
    "number": "4111 1111 1111 1111",
    "holder": "Asha Rao",
    "expiry_month": 12,
    "expiry_year": date.today().year + 2,
    "cvv": "123",
}
