"""Converts model rows into the JSON shapes the API returns."""
from datetime import datetime, timedelta


def format_inr(amount):
    """Formats an amount as an Indian Rupee string (e.g., ₹12,500)"""
    return f"₹{int(round(amount or 0)):,}"


def _iso(value):
    return value.isoformat() if value is not None else None


def _hhmm(value):
    return value.strftime('%H:%M') if value is not None else None


def flight_duration(departure_time, arrival_time):
    """Duration between two clock times, e.g. '2h 30m'. Overnight arrivals roll over."""
    if departure_time is None or arrival_time is None:
        return "TBD"
    anchor = datetime(2000, 1, 1)
    departure = datetime.combine(anchor, departure_time)
    arrival = datetime.combine(anchor, arrival_time)
    if arrival < departure:
        arrival += timedelta(days=1)
    minutes = int((arrival - departure).total_seconds() // 60)
    return f"{minutes // 60}h {minutes % 60}m"


def flight_to_dict(flight):
    return {
        "id": flight.id,
        "flight_number": flight.flight_number,
        "flight_date": _iso(flight.flight_date),
        "flight_status": flight.flight_status,
        "airline_name": flight.airline_name,
        "airline_iata": flight.airline_iata,
        "departure_airport": flight.departure_airport,
        "departure_iata": flight.departure_iata,
        "departure_terminal": flight.departure_terminal,
        "departure_gate": flight.departure_gate,
        "departure_time": _hhmm(flight.departure_time),
        "arrival_airport": flight.arrival_airport,
        "arrival_iata": flight.arrival_iata,
        "arrival_terminal": flight.arrival_terminal,
        "arrival_gate": flight.arrival_gate,
        "arrival_time": _hhmm(flight.arrival_time),
        "duration": flight_duration(flight.departure_time, flight.arrival_time),
        "aircraft_id": flight.aircraft_id,
        "aircraft": flight.aircraft.model if flight.aircraft else None,
        "price": flight.price,
        "price_formatted": format_inr(flight.price) if flight.price is not None else None,
    }


def passenger_to_dict(passenger):
    return {
        "id": passenger.id,
        "booking_id": passenger.booking_id,
        "full_name": passenger.full_name,
        "gender": passenger.gender,
        "birthdate": _iso(passenger.birthdate),
        "passport_number": passenger.passport_number,
    }


def booking_to_dict(booking, include_passengers=True):
    data = {
        "id": booking.id,
        "user_id": booking.user_id,
        "flight_id": booking.flight_id,
        "flight_number": booking.flight_number,
        "departure_city": booking.departure_city,
        "arrival_city": booking.arrival_city,
        "flight_date": _iso(booking.flight_date),
        "departure_time": _hhmm(booking.departure_time),
        "arrival_time": _hhmm(booking.arrival_time),
        "amount": booking.amount,
        "amount_formatted": format_inr(booking.amount),
        "booking_date": _iso(booking.booking_date),
        "status": booking.status.value,
    }
    if include_passengers:
        data["passengers"] = [passenger_to_dict(p) for p in booking.passengers]
    return data


def payment_to_dict(payment):
    return {
        "id": payment.id,
        "booking_id": payment.booking_id,
        "user_id": payment.user_id,
        "transaction_id": payment.transaction_id,
        "amount": payment.amount,
        "currency": payment.currency,
        "status": payment.status.value,
        "payment_method_type": payment.payment_method_type,
        "receipt_url": payment.receipt_url,
        "created_at": _iso(payment.created_at),
    }


def user_to_dict(user):
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "created_at": _iso(user.created_at),
    }


def admin_to_dict(admin):
    return {
        "id": admin.id,
        "username": admin.username,
        "admin_name": admin.admin_name,
        "email": admin.email,
        "last_login": _iso(admin.last_login),
    }


def country_to_dict(country):
    return {
        "id": country.id,
        "name": country.name,
        "iso2": country.iso2,
        "iso3": country.iso3,
        "phone_code": country.phone_code,
        "capital": country.capital,
        "currency": country.currency,
        "region": country.region,
    }


def city_to_dict(city):
    return {
        "id": city.id,
        "name": city.name,
        "state": city.state,
        "country_iso2": city.country_iso2,
        "latitude": city.latitude,
        "longitude": city.longitude,
        "timezone": city.timezone,
        "population": city.population,
    }


def airport_to_dict(airport):
    return {
        "id": airport.id,
        "name": airport.name,
        "iata_code": airport.iata_code,
        "icao_code": airport.icao_code,
        "city_id": airport.city_id,
        "city": airport.city,
        "country_iso2": airport.country_iso2,
        "latitude": airport.latitude,
        "longitude": airport.longitude,
        "timezone": airport.timezone,
    }


def airline_to_dict(airline):
    return {
        "id": airline.id,
        "name": airline.name,
        "iata_code": airline.iata_code,
        "icao_code": airline.icao_code,
        "callsign": airline.callsign,
        "country_iso2": airline.country_iso2,
        "status": airline.status,
        "fleet_size": airline.fleet_size,
    }


def airplane_to_dict(airplane):
    return {
        "id": airplane.id,
        "name": airplane.name,
        "model": airplane.model,
        "registration_number": airplane.registration_number,
        "airline_iata": airplane.airline_iata,
        "capacity": airplane.capacity,
    }
