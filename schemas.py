import re
from datetime import date, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator

from models import BookingStatus

GENDERS = {"male", "female", "other"}


class Schema(BaseModel):
    # One wire shape: snake_case keys, nothing else accepted
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


def load(schema, payload):
    """Validates a JSON body against ``schema``; raises pydantic's ValidationError."""
    return schema.model_validate(payload if payload is not None else {})


def describe_errors(error: ValidationError):
    return [
        {"field": ".".join(str(part) for part in err["loc"]) or "body", "message": err["msg"]}
        for err in error.errors(include_url=False)
    ]


def _check_phone(value):
    digits = value.replace(" ", "").replace("-", "")
    if not re.fullmatch(r"\+?\d{7,15}", digits):
        raise ValueError("Invalid phone number")
    return digits


# --- Identity ---

class RegisterRequest(Schema):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str
    password: str = Field(min_length=6, max_length=128)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value):
        return value.lower()

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, value):
        return _check_phone(value)


class LoginRequest(Schema):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value):
        return value.lower()


class UserUpdate(Schema):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, value):
        return value.lower() if value is not None else value

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, value):
        return _check_phone(value) if value is not None else value


# --- Passengers & bookings ---

class PassengerIn(Schema):
    full_name: str = Field(min_length=1, max_length=100)
    gender: str
    birthdate: date
    passport_number: str = Field(pattern=r"^\d{12}$")

    @field_validator("gender")
    @classmethod
    def known_gender(cls, value):
        value = value.lower()
        if value not in GENDERS:
            raise ValueError(f"Gender must be one of {', '.join(sorted(GENDERS))}")
        return value

    @field_validator("birthdate")
    @classmethod
    def not_in_future(cls, value):
        if value > date.today():
            raise ValueError("Birthdate cannot be in the future")
        return value


class PassengerCreate(PassengerIn):
    booking_id: int


class BookingCreate(Schema):
    flight_id: int
    return_flight_id: Optional[int] = None
    passengers: List[PassengerIn] = Field(min_length=1, max_length=9)


class BookingUpdate(Schema):
    flight_number: Optional[str] = None
    departure_city: Optional[str] = None
    arrival_city: Optional[str] = None
    flight_date: Optional[date] = None
    departure_time: Optional[time] = None
    arrival_time: Optional[time] = None
    amount: Optional[float] = Field(default=None, ge=0)
    status: Optional[BookingStatus] = None


class RescheduleRequest(Schema):
    flight_id: int


# --- Payments ---

class CardDetails(Schema):
    number: str
    holder: str = Field(min_length=1, max_length=100)
    expiry_month: int = Field(ge=1, le=12)
    expiry_year: int
    cvv: str = Field(pattern=r"^\d{3,4}$")

    @field_validator("number")
    @classmethod
    def sixteen_digits(cls, value):
        digits = value.replace(" ", "")
        if not re.fullmatch(r"\d{16}", digits):
            raise ValueError("Card number must have 16 digits")
        return digits

    @field_validator("expiry_year")
    @classmethod
    def not_expired_year(cls, value):
        if value < date.today().year:
            raise ValueError("Card has expired")
        return value

    def is_expired(self, today=None):
        today = today or date.today()
        return (self.expiry_year, self.expiry_month) < (today.year, today.month)


class PaymentCreate(Schema):
    booking_id: int
    payment_method_type: str = Field(default="card", pattern=r"^card$")
    card: CardDetails


# --- Flights (admin) ---

class FlightIn(Schema):
    flight_date: date
    flight_status: Optional[str] = "Scheduled"
    departure_airport: str = Field(min_length=1)
    departure_iata: Optional[str] = None
    departure_terminal: Optional[str] = None
    departure_gate: Optional[str] = None
    departure_time: Optional[time] = None
    arrival_airport: str = Field(min_length=1)
    arrival_iata: Optional[str] = None
    arrival_terminal: Optional[str] = None
    arrival_gate: Optional[str] = None
    arrival_time: Optional[time] = None
    airline_name: Optional[str] = None
    airline_iata: Optional[str] = None
    flight_number: str = Field(min_length=1, max_length=20)
    aircraft_id: Optional[int] = None
    price: Optional[float] = Field(default=None, ge=0)


class FlightUpdate(Schema):
    flight_date: Optional[date] = None
    flight_status: Optional[str] = None
    departure_airport: Optional[str] = None
    departure_iata: Optional[str] = None
    departure_terminal: Optional[str] = None
    departure_gate: Optional[str] = None
    departure_time: Optional[time] = None
    arrival_airport: Optional[str] = None
    arrival_iata: Optional[str] = None
    arrival_terminal: Optional[str] = None
    arrival_gate: Optional[str] = None
    arrival_time: Optional[time] = None
    airline_name: Optional[str] = None
    airline_iata: Optional[str] = None
    flight_number: Optional[str] = None
    aircraft_id: Optional[int] = None
    price: Optional[float] = Field(default=None, ge=0)


# --- Reference data (admin) ---

class AirlineIn(Schema):
    name: str = Field(min_length=1, max_length=100)
    iata_code: str = Field(min_length=2, max_length=10)
    icao_code: Optional[str] = None
    callsign: Optional[str] = None
    country_iso2: Optional[str] = None
    status: Optional[str] = "active"
    fleet_size: Optional[int] = Field(default=None, ge=0)


class AirplaneIn(Schema):
    name: Optional[str] = None
    model: str = Field(min_length=1, max_length=100)
    registration_number: Optional[str] = None
    airline_iata: Optional[str] = None
    capacity: Optional[int] = Field(default=None, gt=0)
