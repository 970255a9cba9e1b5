import enum
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy outside of the app setup
db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def status_column(enum_cls, default):
    # Stored as plain strings so the table stays portable across engines
    return db.Column(
        db.Enum(
            enum_cls,
            native_enum=False,
            length=20,
            validate_strings=True,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=default,
    )


# --- Reference Data ---

class Country(db.Model):
    __tablename__ = 'countries'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    iso2 = db.Column(db.String(10), unique=True, nullable=False)
    iso3 = db.Column(db.String(10))
    phone_code = db.Column(db.String(20))
    capital = db.Column(db.String(100))
    currency = db.Column(db.String(10))
    region = db.Column(db.String(100))


class City(db.Model):
    __tablename__ = 'cities'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(100))
    country_iso2 = db.Column(db.String(10), db.ForeignKey('countries.iso2'))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    timezone = db.Column(db.String(100))
    population = db.Column(db.Integer)

    country = db.relationship('Country', backref=db.backref('cities', lazy=True))


class Airport(db.Model):
    __tablename__ = 'airports'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100))
    iata_code = db.Column(db.String(10), unique=True)
    icao_code = db.Column(db.String(10))
    city_id = db.Column(db.Integer, db.ForeignKey('cities.id'))
    city = db.Column(db.String(100))
    country_iso2 = db.Column(db.String(10), db.ForeignKey('countries.iso2'))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    timezone = db.Column(db.String(100))


class Airline(db.Model):
    __tablename__ = 'airlines'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100))
    iata_code = db.Column(db.String(10), unique=True, nullable=False)
    icao_code = db.Column(db.String(10))
    callsign = db.Column(db.String(50))
    country_iso2 = db.Column(db.String(10), db.ForeignKey('countries.iso2'))
    status = db.Column(db.String(50))
    fleet_size = db.Column(db.Integer)

    airplanes = db.relationship('Airplane', backref='airline', lazy=True)


class Airplane(db.Model):
    __tablename__ = 'airplanes'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100))
    model = db.Column(db.String(100))
    registration_number = db.Column(db.String(50))
    airline_iata = db.Column(db.String(10), db.ForeignKey('airlines.iata_code'))
    capacity = db.Column(db.Integer)


# --- Identity ---

class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(20), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    bookings = db.relationship(
        'Booking', backref='owner', lazy=True, cascade='all, delete-orphan'
    )


class Admin(db.Model):
    __tablename__ = 'admins'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    admin_name = db.Column(db.String(100))
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)


# --- Flight Catalog ---

class Flight(db.Model):
    __tablename__ = 'flights'
    id = db.Column(db.Integer, primary_key=True)
    flight_date = db.Column(db.Date, index=True)
    flight_status = db.Column(db.String(50))

    departure_airport = db.Column(db.String(100))
    departure_iata = db.Column(db.String(10))
    departure_terminal = db.Column(db.String(10))
    departure_gate = db.Column(db.String(10))
    departure_time = db.Column(db.Time)

    arrival_airport = db.Column(db.String(100))
    arrival_iata = db.Column(db.String(10))
    arrival_terminal = db.Column(db.String(10))
    arrival_gate = db.Column(db.String(10))
    arrival_time = db.Column(db.Time)

    airline_name = db.Column(db.String(100))
    airline_iata = db.Column(db.String(10))
    flight_number = db.Column(db.String(20))
    aircraft_id = db.Column(db.Integer, db.ForeignKey('airplanes.id'))

    price = db.Column(db.Numeric(10, 2, asdecimal=False))

    aircraft = db.relationship('Airplane', backref=db.backref('flights', lazy=True))


# --- Booking Engine ---

class Booking(db.Model):
    __tablename__ = 'bookings'
    id = db.Column(db.Integer, primary_key=True)

    # Foreign Keys
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    flight_id = db.Column(db.Integer, db.ForeignKey('flights.id', ondelete='SET NULL'))

    # Flight details are copied so the booking survives flight edits
    flight_number = db.Column(db.String(20))
    departure_city = db.Column(db.String(100))
    arrival_city = db.Column(db.String(100))
    flight_date = db.Column(db.Date)
    departure_time = db.Column(db.Time)
    arrival_time = db.Column(db.Time)

    amount = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    booking_date = db.Column(db.DateTime, default=utcnow)
    status = status_column(BookingStatus, BookingStatus.PENDING)

    flight = db.relationship('Flight', backref=db.backref('bookings', lazy=True))
    passengers = db.relationship(
        'Passenger', backref='booking', lazy=True,
        cascade='all, delete-orphan', order_by='Passenger.id'
    )
    payments = db.relationship(
        'Payment', backref='booking', lazy=True,
        cascade='all, delete-orphan', order_by='Payment.id'
    )

    def has_succeeded_payment(self):
        return any(p.status == PaymentStatus.SUCCEEDED for p in self.payments)


class Passenger(db.Model):
    __tablename__ = 'passengers'
    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False)
    full_name = db.Column(db.String(100), nullable=False)
    gender = db.Column(db.String(10), nullable=False)
    birthdate = db.Column(db.Date, nullable=False)
    passport_number = db.Column(db.String(12), nullable=False)


class Payment(db.Model):
    __tablename__ = 'payments'
    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'))
    transaction_id = db.Column(db.String(50), unique=True, nullable=False)
    amount = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=False)
    currency = db.Column(db.String(10), nullable=False, default='INR')
    status = status_column(PaymentStatus, PaymentStatus.FAILED)
    payment_method_type = db.Column(db.String(20), nullable=False, default='card')
    receipt_url = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utcnow)

    user = db.relationship('User', backref=db.backref('payments', lazy=True, passive_deletes=True))
