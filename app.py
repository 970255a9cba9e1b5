import logging
from datetime import date, datetime

from flask import Flask, abort, jsonify, request
from flask_cors import CORS
from flask_jwt_extended import jwt_required
from pydantic import ValidationError
from sqlalchemy import distinct, func, or_
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

import booking_policy
from admin import admin_bp
from auth import (
    auth_bp, bcrypt, current_id, ensure_self_or_admin, is_admin, jwt, user_required,
)
from booking_policy import BookingError
from config import Config, setup_logging
from models import (
    Airline, Airplane, Airport, Booking, BookingStatus, City, Country, Flight, Passenger,
    Payment, db,
)
from payment_simulator import PaymentDeclined, PaymentSimulator, pay_for_booking, reconcile
from schemas import (
    BookingCreate, PassengerCreate, PaymentCreate, RescheduleRequest, describe_errors, load,
)
from serializers import (
    airline_to_dict, airplane_to_dict, airport_to_dict, booking_to_dict, city_to_dict,
    country_to_dict, flight_to_dict, format_inr, passenger_to_dict, payment_to_dict,
)

MAX_PASSENGERS = 9

# Create the Flask app
app = Flask(__name__)
app.config.from_object(Config)

setup_logging(app.config['LOG_LEVEL'])
logger = logging.getLogger(__name__)

# --- Initialization ---
db.init_app(app)
CORS(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)
bcrypt.init_app(app)
jwt.init_app(app)

app.register_blueprint(auth_bp)
app.register_blueprint(admin_bp)


# --- Error Handling ---

@app.errorhandler(ValidationError)
def handle_validation_error(error):
    return jsonify({"error": "Invalid request body.", "details": describe_errors(error)}), 400


@app.errorhandler(BookingError)
def handle_booking_error(error):
    return jsonify({"error": error.message}), error.status_code


@app.errorhandler(HTTPException)
def handle_http_error(error):
    return jsonify({"error": error.description}), error.code


@app.errorhandler(SQLAlchemyError)
def handle_database_error(error):
    db.session.rollback()
    logger.exception("Database error while handling %s %s", request.method, request.path)
    return jsonify({"error": "A database error occurred. Please try again."}), 500


# --- Helper Functions ---

def parse_date_arg(name, required=True):
    value = request.args.get(name)
    if not value:
        if required:
            abort(400, description=f"Missing required parameter: {name}")
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        abort(400, description="Invalid date format. Use YYYY-MM-DD.")


def required_arg(name):
    value = (request.args.get(name) or '').strip()
    if not value:
        abort(400, description=f"Missing required parameter: {name}")
    return value


def contains(column, text):
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return column.ilike(f"%{escaped}%", escape='\\')


def not_cancelled():
    return or_(Flight.flight_status.is_(None), func.lower(Flight.flight_status) != 'cancelled')


def bookable_flights(departure, arrival):
    """Flights on the route that can be sold: not cancelled and priced."""
    return Flight.query.filter(
        contains(Flight.departure_airport, departure),
        contains(Flight.arrival_airport, arrival),
        not_cancelled(),
        Flight.price.isnot(None),
        Flight.price > 0,
    )


def search_leg(departure, arrival, flight_date):
    query = bookable_flights(departure, arrival).filter(Flight.flight_date == flight_date)
    return query.order_by(Flight.departure_time, Flight.id).all()


def load_booking(booking_id):
    booking = db.session.get(Booking, booking_id)
    if booking is None or not (is_admin() or booking.user_id == current_id()):
        abort(404, description="Booking not found or access denied.")
    return booking


def payment_simulator():
    return PaymentSimulator.from_config(app.config)


# --- Core Routes ---

@app.route('/')
def home():
    return jsonify({"message": "Flynest API is running."})


# --- Flight Catalog ---

@app.route('/api/flights', methods=['GET'])
def list_flights():
    flights = Flight.query.order_by(Flight.flight_date, Flight.departure_time).all()
    return jsonify([flight_to_dict(f) for f in flights]), 200


@app.route('/api/flights/<int:flight_id>', methods=['GET'])
def get_flight(flight_id):
    flight = db.get_or_404(Flight, flight_id, description="Flight not found.")
    return jsonify(flight_to_dict(flight)), 200


@app.route('/api/flights/search', methods=['GET'])
def search_flights():
    departure = required_arg('departure_airport')
    arrival = required_arg('arrival_airport')
    flight_date = parse_date_arg('flight_date')

    flights = search_leg(departure, arrival, flight_date)
    logger.info("Search %s -> %s on %s: %d result(s)", departure, arrival, flight_date, len(flights))

    if not flights:
        return jsonify({"error": "No matching flights found."}), 404
    return jsonify([flight_to_dict(f) for f in flights]), 200


@app.route('/api/flights/search-roundtrip', methods=['GET'])
def search_roundtrip():
    departure = required_arg('departure_airport')
    arrival = required_arg('arrival_airport')
    flight_date = parse_date_arg('flight_date')
    return_date = parse_date_arg('return_date')

    if return_date < flight_date:
        abort(400, description="Return date must not be before the departure date.")

    onward = search_leg(departure, arrival, flight_date)
    inbound = search_leg(arrival, departure, return_date)

    if not onward and not inbound:
        return jsonify({"error": "No matching onward or return flights found."}), 404
    return jsonify({
        "onward": [flight_to_dict(f) for f in onward],
        "return": [flight_to_dict(f) for f in inbound],
    }), 200


@app.route('/api/flights/by-date', methods=['GET'])
def flights_by_date():
    flight_date = parse_date_arg('date')
    flights = (
        Flight.query
        .filter(Flight.flight_date == flight_date, not_cancelled())
        .order_by(Flight.departure_time, Flight.id)
        .all()
    )
    if not flights:
        return jsonify({"error": "No flights found on this date."}), 404
    return jsonify([flight_to_dict(f) for f in flights]), 200


@app.route('/api/flights/available-dates', methods=['GET'])
def available_dates():
    departure = required_arg('departure_airport')
    arrival = required_arg('arrival_airport')
    start = parse_date_arg('start_date')
    end = parse_date_arg('end_date')

    rows = (
        bookable_flights(departure, arrival)
        .filter(Flight.flight_date >= start, Flight.flight_date <= end)
        .with_entities(
            Flight.flight_date,
            func.count(Flight.id),
            func.min(Flight.price),
            func.max(Flight.price),
            func.count(distinct(Flight.airline_name)),
        )
        .group_by(Flight.flight_date)
        .order_by(Flight.flight_date)
        .all()
    )
    return jsonify([
        {
            "date": flight_date.isoformat(),
            "flight_count": count,
            "min_price": min_price,
            "max_price": max_price,
            "airlines": airlines,
        }
        for flight_date, count, min_price, max_price, airlines in rows
    ]), 200


# --- Reference Data ---

@app.route('/api/countries', methods=['GET'])
def list_countries():
    query = Country.query
    if request.args.get('q'):
        query = query.filter(contains(Country.name, request.args['q']))
    return jsonify([country_to_dict(c) for c in query.order_by(Country.name).all()]), 200


@app.route('/api/cities', methods=['GET'])
def list_cities():
    query = City.query
    if request.args.get('country'):
        query = query.filter(City.country_iso2 == request.args['country'].upper())
    if request.args.get('q'):
        query = query.filter(contains(City.name, request.args['q']))
    return jsonify([city_to_dict(c) for c in query.order_by(City.name).all()]), 200


@app.route('/api/airports', methods=['GET'])
def list_airports():
    query = Airport.query
    if request.args.get('q'):
        text = request.args['q']
        query = query.filter(or_(
            contains(Airport.name, text), contains(Airport.city, text), contains(Airport.iata_code, text)
        ))
    return jsonify([airport_to_dict(a) for a in query.order_by(Airport.name).all()]), 200


@app.route('/api/airlines', methods=['GET'])
def list_airlines():
    query = Airline.query
    if request.args.get('q'):
        query = query.filter(contains(Airline.name, request.args['q']))
    return jsonify([airline_to_dict(a) for a in query.order_by(Airline.name).all()]), 200


@app.route('/api/airlines/<int:airline_id>', methods=['GET'])
def get_airline(airline_id):
    airline = db.get_or_404(Airline, airline_id, description="Airline not found.")
    return jsonify(airline_to_dict(airline)), 200


@app.route('/api/airplanes', methods=['GET'])
def list_airplanes():
    query = Airplane.query
    if request.args.get('airline'):
        query = query.filter(Airplane.airline_iata == request.args['airline'].upper())
    return jsonify([airplane_to_dict(a) for a in query.order_by(Airplane.id).all()]), 200


@app.route('/api/airplanes/<int:airplane_id>', methods=['GET'])
def get_airplane(airplane_id):
    airplane = db.get_or_404(Airplane, airplane_id, description="Airplane not found.")
    return jsonify(airplane_to_dict(airplane)), 200


# --- Booking Routes ---

@app.route('/api/bookings', methods=['POST'])
@user_required
def create_booking():
    data = load(BookingCreate, request.get_json(silent=True))
    user_id = current_id()

    leg_ids = [data.flight_id]
    if data.return_flight_id is not None:
        leg_ids.append(data.return_flight_id)

    flights = []
    for flight_id in leg_ids:
        flight = db.session.get(Flight, flight_id)
        if flight is None:
            return jsonify({"error": f"Flight {flight_id} not found."}), 404
        if not booking_policy.is_bookable(flight):
            return jsonify({"error": f"Flight {flight.flight_number} is not available for booking."}), 409
        if flight.flight_date < date.today():
            return jsonify({"error": f"Flight {flight.flight_number} has already departed."}), 400
        flights.append(flight)

    if len(flights) == 2 and flights[1].flight_date < flights[0].flight_date:
        return jsonify({"error": "Return flight must not be before the onward flight."}), 400

    # Both legs and all passengers are written in one commit
    bookings = []
    for flight in flights:
        booking = Booking(user_id=user_id, status=BookingStatus.PENDING)
        for passenger in data.passengers:
            booking.passengers.append(Passenger(**passenger.model_dump()))
        booking_policy.apply_flight(booking, flight, passenger_count=len(data.passengers))
        db.session.add(booking)
        bookings.append(booking)

    db.session.commit()
    logger.info("User %s created booking(s) %s", user_id, [b.id for b in bookings])

    total = round(sum(b.amount for b in bookings), 2)
    return jsonify({
        "message": "Booking created. Complete the payment to confirm it.",
        "booking": booking_to_dict(bookings[0]),
        "return_booking": booking_to_dict(bookings[1]) if len(bookings) > 1 else None,
        "total_amount": total,
        "total_amount_formatted": format_inr(total),
    }), 201


@app.route('/api/bookings/<int:booking_id>', methods=['GET'])
@jwt_required()
def get_booking(booking_id):
    booking = load_booking(booking_id)
    return jsonify(booking_to_dict(booking)), 200


@app.route('/api/bookings/user/<int:user_id>', methods=['GET'])
@jwt_required()
def get_user_bookings(user_id):
    ensure_self_or_admin(user_id)

    query = Booking.query.filter_by(user_id=user_id)
    if request.args.get('status'):
        try:
            status = BookingStatus(request.args['status'].lower())
        except ValueError:
            abort(400, description="Unknown booking status.")
        query = query.filter(Booking.status == status)

    bookings = query.order_by(Booking.booking_date.desc(), Booking.id.desc()).all()
    return jsonify([booking_to_dict(b) for b in bookings]), 200


@app.route('/api/bookings/<int:booking_id>/options', methods=['GET'])
@jwt_required()
def booking_options(booking_id):
    booking = load_booking(booking_id)
    if booking.flight_date is None:
        return jsonify({"days_until_flight": None, "can_cancel": False, "can_reschedule": False,
                        "reschedule_window": None}), 200

    earliest, latest = booking_policy.reschedule_window(booking)
    return jsonify({
        "days_until_flight": booking_policy.days_until_flight(booking.flight_date),
        "can_cancel": booking_policy.can_cancel(booking),
        "can_reschedule": booking_policy.can_reschedule(booking),
        "reschedule_window": {"earliest": earliest.isoformat(), "latest": latest.isoformat()},
    }), 200


def _cancel(booking):
    changed = booking_policy.cancel(booking)
    if changed:
        db.session.commit()
        message = "Booking cancelled."
        if booking.has_succeeded_payment():
            message += " Refund will be processed within 5-6 business days."
    else:
        message = "Booking is already cancelled."
    return jsonify({"message": message, "booking": booking_to_dict(booking)}), 200


@app.route('/api/bookings/<int:booking_id>/cancel', methods=['POST'])
@jwt_required()
def cancel_booking(booking_id):
    return _cancel(load_booking(booking_id))


@app.route('/api/bookings/<int:booking_id>/reschedule', methods=['POST'])
@jwt_required()
def reschedule_booking(booking_id):
    booking = load_booking(booking_id)
    data = load(RescheduleRequest, request.get_json(silent=True))
    flight = db.get_or_404(Flight, data.flight_id, description="Flight not found.")

    difference = booking_policy.reschedule(booking, flight)
    db.session.commit()

    return jsonify({
        "message": f"Your flight has been changed to {booking.flight_number} on {booking.flight_date.isoformat()}.",
        "price_difference": difference,
        "booking": booking_to_dict(booking),
    }), 200


@app.route('/api/bookings/<int:booking_id>/reconcile', methods=['POST'])
@jwt_required()
def reconcile_booking(booking_id):
    booking = load_booking(booking_id)
    repaired = reconcile(booking)
    if repaired:
        db.session.commit()
        logger.info("Booking %s confirmed from an earlier successful payment", booking.id)
    return jsonify({"repaired": repaired, "booking": booking_to_dict(booking)}), 200


@app.route('/api/bookings/<int:booking_id>', methods=['DELETE'])
@jwt_required()
def delete_booking(booking_id):
    booking = load_booking(booking_id)
    if not is_admin():
        # Travellers never remove rows; deleting is a cancellation
        return _cancel(booking)

    db.session.delete(booking)
    db.session.commit()
    logger.info("Admin %s deleted booking %s", current_id(), booking_id)
    return '', 204


# --- Passenger Routes ---

@app.route('/api/passengers', methods=['POST'])
@user_required
def add_passenger():
    data = load(PassengerCreate, request.get_json(silent=True))
    booking = load_booking(data.booking_id)

    if booking.status != BookingStatus.PENDING:
        return jsonify({"error": "Passengers can only be added before payment."}), 409
    if len(booking.passengers) >= MAX_PASSENGERS:
        return jsonify({"error": f"A booking can have at most {MAX_PASSENGERS} passengers."}), 409

    unit_price = booking.amount / max(len(booking.passengers), 1)
    passenger = Passenger(**data.model_dump(exclude={'booking_id'}))
    booking.passengers.append(passenger)
    booking.amount = round(unit_price * len(booking.passengers), 2)
    db.session.commit()

    return jsonify({"passenger": passenger_to_dict(passenger), "booking": booking_to_dict(booking)}), 201


@app.route('/api/passengers/booking/<int:booking_id>', methods=['GET'])
@jwt_required()
def get_booking_passengers(booking_id):
    booking = load_booking(booking_id)
    return jsonify([passenger_to_dict(p) for p in booking.passengers]), 200


# --- Payment Routes ---

@app.route('/api/payments', methods=['POST'])
@user_required
def create_payment():
    data = load(PaymentCreate, request.get_json(silent=True))
    if data.card.is_expired():
        return jsonify({"error": "Card has expired."}), 400

    booking = load_booking(data.booking_id)

    try:
        payment = pay_for_booking(
            db.session, booking, current_id(), payment_simulator(), data.payment_method_type
        )
    except PaymentDeclined as e:
        return jsonify({"error": e.message, "payment": payment_to_dict(e.payment)}), 402
    except SQLAlchemyError:
        logger.exception("Recording payment for booking %s failed", data.booking_id)
        return jsonify({
            "error": "Payment could not be recorded, so the booking was not confirmed. Please try again."
        }), 500

    return jsonify({
        "message": "Payment successful.",
        "payment": payment_to_dict(payment),
        "booking": booking_to_dict(booking),
    }), 201


@app.route('/api/payments/<int:payment_id>', methods=['GET'])
@jwt_required()
def get_payment(payment_id):
    payment = db.get_or_404(Payment, payment_id, description="Payment not found.")
    ensure_self_or_admin(payment.booking.user_id)
    return jsonify(payment_to_dict(payment)), 200


@app.route('/api/payments/user/<int:user_id>', methods=['GET'])
@jwt_required()
def get_user_payments(user_id):
    ensure_self_or_admin(user_id)
    payments = (
        Payment.query.join(Booking)
        .filter(Booking.user_id == user_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )
    return jsonify([payment_to_dict(p) for p in payments]), 200


@app.route('/api/payments/booking/<int:booking_id>', methods=['GET'])
@jwt_required()
def get_booking_payments(booking_id):
    booking = load_booking(booking_id)
    return jsonify([payment_to_dict(p) for p in booking.payments]), 200


# --- Run App ---

if __name__ == '__main__':
    with app.app_context():
        db.create_all()

    app.run(debug=app.config['DEBUG'], port=app.config['PORT'])
