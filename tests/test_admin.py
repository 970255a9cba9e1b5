from conftest import CARD, PASSENGER
from models import Airline, Airplane, Booking, BookingStatus, Flight, Payment, PaymentStatus, User, db

NEW_FLIGHT = {
    "flight_date": "2030-01-15",
    "departure_airport": "Indira Gandhi International Airport (DEL)",
    "departure_iata": "DEL",
    "departure_time": "07:10",
    "arrival_airport": "Kempegowda International Airport (BLR)",
    "arrival_iata": "BLR",
    "arrival_time": "09:55",
    "airline_name": "Vistara",
    "airline_iata": "UK",
    "flight_number": "UK815",
    "price": 6200,
}


def test_stats(client, user, admin_headers, make_flight, make_booking):
    user_id, headers = user
    flight_id = make_flight(price=5000.0)
    make_booking(user_id, days_ahead=10, status=BookingStatus.CANCELLED)

    booking_id = client.post("/api/bookings", headers=headers, json={
        "flight_id": flight_id, "passengers": [PASSENGER],
    }).get_json()["booking"]["id"]
    client.post("/api/payments", headers=headers, json={"booking_id": booking_id, "card": CARD})

    body = client.get("/api/admin/stats", headers=admin_headers).get_json()

    assert body["total_users"] == 1
    assert body["total_flights"] == 1
    assert body["total_bookings"] == 2
    assert body["bookings_by_status"] == {"pending": 0, "confirmed": 1, "cancelled": 1}
    assert body["total_revenue"] == 5000.0
    assert body["total_revenue_formatted"] == "₹5,000"


def test_flight_crud(client, admin_headers):
    created = client.post("/api/flights", headers=admin_headers, json=NEW_FLIGHT)
    assert created.status_code == 201
    flight = created.get_json()
    assert flight["flight_status"] == "Scheduled"
    assert flight["duration"] == "2h 45m"

    updated = client.put(f"/api/flights/{flight['id']}", headers=admin_headers,
                         json={"price": 7000, "flight_status": "Delayed"})
    assert updated.status_code == 200
    assert updated.get_json()["price"] == 7000.0

    assert client.delete(f"/api/flights/{flight['id']}", headers=admin_headers).status_code == 204
    assert Flight.query.count() == 0


def test_flight_validation(client, admin_headers):
    response = client.post("/api/flights", headers=admin_headers, json={**NEW_FLIGHT, "price": -1})
    assert response.status_code == 400

    response = client.post("/api/flights", headers=admin_headers, json={**NEW_FLIGHT, "aircraft_id": 77})
    assert response.status_code == 404


def test_deleting_flight_keeps_bookings(client, user, admin_headers, make_flight):
    _, headers = user
    flight_id = make_flight()
    booking_id = client.post("/api/bookings", headers=headers, json={
        "flight_id": flight_id, "passengers": [PASSENGER],
    }).get_json()["booking"]["id"]

    client.delete(f"/api/flights/{flight_id}", headers=admin_headers)

    booking = db.session.get(Booking, booking_id)
    assert booking.flight_id is None
    assert booking.flight_number == "6E101"


def test_flight_routes_need_admin(client, user):
    _, headers = user
    assert client.post("/api/flights", headers=headers, json=NEW_FLIGHT).status_code == 403
    assert client.post("/api/flights", json=NEW_FLIGHT).status_code == 401


def test_admin_booking_list_and_status_edit(client, user, admin_headers, make_booking):
    user_id, _ = user
    close = make_booking(user_id, days_ahead=1)
    pending = make_booking(user_id, days_ahead=10, status=BookingStatus.PENDING)

    listed = client.get("/api/bookings", headers=admin_headers, query_string={"status": "pending"})
    assert [b["id"] for b in listed.get_json()] == [pending]

    # Admins may cancel inside the traveller cutoff
    response = client.put(f"/api/bookings/{close}", headers=admin_headers, json={"status": "cancelled"})
    assert response.status_code == 200
    assert response.get_json()["status"] == "cancelled"

    edit_cancelled = client.put(f"/api/bookings/{close}", headers=admin_headers, json={"flight_number": "AI1"})
    assert edit_cancelled.status_code == 409

    unpaid = client.put(f"/api/bookings/{pending}", headers=admin_headers, json={"status": "confirmed"})
    assert unpaid.status_code == 409
    assert unpaid.get_json()["error"] == "Booking has no successful payment; it cannot be confirmed."

    unknown = client.put(f"/api/bookings/{pending}", headers=admin_headers, json={"status": "refunded"})
    assert unknown.status_code == 400


def test_admin_confirms_booking_with_recorded_payment(client, user, admin_headers, make_booking):
    user_id, _ = user
    booking_id = make_booking(user_id, days_ahead=10, status=BookingStatus.PENDING)
    booking = db.session.get(Booking, booking_id)
    db.session.add(Payment(booking=booking, user_id=user_id, transaction_id="pi_manual",
                           amount=booking.amount, status=PaymentStatus.SUCCEEDED))
    db.session.commit()

    response = client.put(f"/api/bookings/{booking_id}", headers=admin_headers, json={"status": "confirmed"})

    assert response.status_code == 200
    assert response.get_json()["status"] == "confirmed"


def test_user_management(client, register, admin_headers):
    user_id, headers = register(email="first@example.com")
    other_id, _ = register(email="second@example.com")

    assert len(client.get("/api/users", headers=admin_headers).get_json()) == 2

    own = client.put(f"/api/users/{user_id}", headers=headers, json={"name": "Asha R."})
    assert own.get_json()["name"] == "Asha R."

    taken = client.put(f"/api/users/{user_id}", headers=headers, json={"email": "second@example.com"})
    assert taken.status_code == 409

    assert client.get(f"/api/users/{other_id}", headers=headers).status_code == 403

    assert client.delete(f"/api/users/{other_id}", headers=admin_headers).status_code == 204
    assert db.session.get(User, other_id) is None


def test_airlines_and_airplanes(client, admin_headers):
    airline = client.post("/api/airlines", headers=admin_headers,
                          json={"name": "IndiGo", "iata_code": "6e"}).get_json()
    assert airline["iata_code"] == "6E"

    duplicate = client.post("/api/airlines", headers=admin_headers, json={"name": "Copy", "iata_code": "6E"})
    assert duplicate.status_code == 409

    orphan = client.post("/api/airplanes", headers=admin_headers,
                         json={"model": "A320neo", "airline_iata": "ZZ"})
    assert orphan.status_code == 404

    airplane = client.post("/api/airplanes", headers=admin_headers, json={
        "name": "VT-IZA", "model": "A320neo", "airline_iata": "6e", "capacity": 186,
    }).get_json()
    assert airplane["airline_iata"] == "6E"

    listed = client.get("/api/airplanes", query_string={"airline": "6E"}).get_json()
    assert [a["id"] for a in listed] == [airplane["id"]]

    assert client.delete(f"/api/airlines/{airline['id']}", headers=admin_headers).status_code == 409
    assert client.delete(f"/api/airplanes/{airplane['id']}", headers=admin_headers).status_code == 204
    assert client.delete(f"/api/airlines/{airline['id']}", headers=admin_headers).status_code == 204
    assert Airline.query.count() == 0
    assert Airplane.query.count() == 0
