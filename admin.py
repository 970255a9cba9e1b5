"""Admin console endpoints: user, flight, booking and reference-data management."""
import logging

from flask import Blueprint, abort, jsonify, request
from flask_jwt_extended import jwt_required
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

import booking_policy
from auth import admin_required, current_id, ensure_self_or_admin
from models import (
    Airline, Airplane, Booking, BookingStatus, Flight, Payment, PaymentStatus, User, db,
)
from schemas import AirlineIn, AirplaneIn, BookingUpdate, FlightIn, FlightUpdate, UserUpdate, load
from serializers import (
    airline_to_dict, airplane_to_dict, booking_to_dict, flight_to_dict, format_inr, user_to_dict,
)

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api')


def _commit_or_conflict(message):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        abort(409, description=message)


# --- Users ---

@admin_bp.route('/users', methods=['GET'])
@admin_required
def list_users():
    users = User.query.order_by(User.id).all()
    return jsonify([user_to_dict(u) for u in users]), 200


@admin_bp.route('/users/<int:user_id>', methods=['GET'])
@jwt_required()
def get_user(user_id):
    ensure_self_or_admin(user_id)
    user = db.get_or_404(User, user_id, description="User not found.")
    return jsonify(user_to_dict(user)), 200


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@jwt_required()
def update_user(user_id):
    ensure_self_or_admin(user_id)
    user = db.get_or_404(User, user_id, description="User not found.")
    data = load(UserUpdate, request.get_json(silent=True))

    if data.email and data.email != user.email and User.query.filter_by(email=data.email).first():
        return jsonify({"error": "Email already exists."}), 409
    if data.phone and data.phone != user.phone and User.query.filter_by(phone=data.phone).first():
        return jsonify({"error": "Phone number already exists."}), 409

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user, field, value)
    _commit_or_conflict("Email or phone number already exists.")
    return jsonify(user_to_dict(user)), 200


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    user = db.get_or_404(User, user_id, description="User not found.")
    db.session.delete(user)
    db.session.commit()
    logger.info("Admin %s deleted user %s", current_id(), user_id)
    return '', 204


# --- Flights ---

@admin_bp.route('/flights', methods=['POST'])
@admin_required
def create_flight():
    data = load(FlightIn, request.get_json(silent=True))
    if data.aircraft_id is not None:
        db.get_or_404(Airplane, data.aircraft_id, description="Aircraft not found.")

    flight = Flight(**data.model_dump())
    db.session.add(flight)
    db.session.commit()
    logger.info("Admin %s created flight %s (%s)", current_id(), flight.id, flight.flight_number)
    return jsonify(flight_to_dict(flight)), 201


@admin_bp.route('/flights/<int:flight_id>', methods=['PUT'])
@admin_required
def update_flight(flight_id):
    flight = db.get_or_404(Flight, flight_id, description="Flight not found.")
    data = load(FlightUpdate, request.get_json(silent=True))
    changes = data.model_dump(exclude_unset=True)
    if changes.get('aircraft_id') is not None:
        db.get_or_404(Airplane, changes['aircraft_id'], description="Aircraft not found.")

    for field, value in changes.items():
        setattr(flight, field, value)
    db.session.commit()
    return jsonify(flight_to_dict(flight)), 200


@admin_bp.route('/flights/<int:flight_id>', methods=['DELETE'])
@admin_required
def delete_flight(flight_id):
    flight = db.get_or_404(Flight, flight_id, description="Flight not found.")
    # Bookings keep their copied flight details; the ORM clears their flight_id
    db.session.delete(flight)
    db.session.commit()
    logger.info("Admin %s deleted flight %s", current_id(), flight_id)
    return '', 204


# --- Bookings ---

@admin_bp.route('/bookings', methods=['GET'])
@admin_required
def list_bookings():
    query = Booking.query
    if request.args.get('status'):
        try:
            query = query.filter(Booking.status == BookingStatus(request.args['status'].lower()))
        except ValueError:
            abort(400, description="Unknown booking status.")
    bookings = query.order_by(Booking.booking_date.desc(), Booking.id.desc()).all()
    return jsonify([booking_to_dict(b, include_passengers=False) for b in bookings]), 200


@admin_bp.route('/bookings/<int:booking_id>', methods=['PUT'])
@admin_required
def update_booking(booking_id):
    booking = db.get_or_404(Booking, booking_id, description="Booking not found.")
    data = load(BookingUpdate, request.get_json(silent=True))
    changes = data.model_dump(exclude_unset=True)
    target_status = changes.pop('status', None)

    if booking.status == BookingStatus.CANCELLED and changes:
        return jsonify({"error": "Cancelled bookings cannot be edited."}), 409

    for field, value in changes.items():
        setattr(booking, field, value)
    if target_status is not None:
        booking_policy.set_status(booking, target_status)

    db.session.commit()
    logger.info("Admin %s updated booking %s", current_id(), booking_id)
    return jsonify(booking_to_dict(booking)), 200


# --- Reference data ---

@admin_bp.route('/airlines', methods=['POST'])
@admin_required
def create_airline():
    data = load(AirlineIn, request.get_json(silent=True))
    airline = Airline(**{**data.model_dump(), "iata_code": data.iata_code.upper()})
    db.session.add(airline)
    _commit_or_conflict("An airline with this IATA code already exists.")
    return jsonify(airline_to_dict(airline)), 201


@admin_bp.route('/airlines/<int:airline_id>', methods=['DELETE'])
@admin_required
def delete_airline(airline_id):
    airline = db.get_or_404(Airline, airline_id, description="Airline not found.")
    if airline.airplanes:
        return jsonify({"error": "Airline still has airplanes assigned."}), 409
    db.session.delete(airline)
    db.session.commit()
    return '', 204


@admin_bp.route('/airplanes', methods=['POST'])
@admin_required
def create_airplane():
    data = load(AirplaneIn, request.get_json(silent=True))
    if data.airline_iata and not Airline.query.filter_by(iata_code=data.airline_iata.upper()).first():
        return jsonify({"error": "Airline not found."}), 404

    values = data.model_dump()
    if values['airline_iata']:
        values['airline_iata'] = values['airline_iata'].upper()
    airplane = Airplane(**values)
    db.session.add(airplane)
    db.session.commit()
    return jsonify(airplane_to_dict(airplane)), 201


@admin_bp.route('/airplanes/<int:airplane_id>', methods=['DELETE'])
@admin_required
def delete_airplane(airplane_id):
    airplane = db.get_or_404(Airplane, airplane_id, description="Airplane not found.")
    db.session.delete(airplane)
    db.session.commit()
    return '', 204


# --- Dashboard ---

@admin_bp.route('/admin/stats', methods=['GET'])
@admin_required
def stats():
    by_status = dict(
        db.session.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all()
    )
    revenue = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.status == PaymentStatus.SUCCEEDED)
        .scalar()
    )
    return jsonify({
        "total_users": User.query.count(),
        "total_flights": Flight.query.count(),
        "total_bookings": sum(by_status.values()),
        "bookings_by_status": {s.value: by_status.get(s, 0) for s in BookingStatus},
        "total_revenue": float(revenue),
        "total_revenue_formatted": format_inr(revenue),
    }), 200
