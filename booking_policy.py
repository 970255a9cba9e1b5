"""
Booking status rules.

Bookings move through a closed set of states (see ``TRANSITIONS``). Every
status change in the service goes through this module so that the
cancellation and reschedule deadlines are enforced in one place.
"""
import calendar
import logging
from datetime import date, timedelta

from models import BookingStatus

logger = logging.getLogger(__name__)

CANCELLATION_CUTOFF_DAYS = 2
RESCHEDULE_CUTOFF_DAYS = 1
RESCHEDULE_WINDOW_MONTHS = 6

TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
}


class BookingError(Exception):
    """Base error for booking operations; carries the HTTP status to answer with."""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class PolicyViolation(BookingError):
    status_code = 400


class InvalidTransition(BookingError):
    status_code = 409


def check_transition(current, target):
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot change booking status from {current.value} to {target.value}."
        )


def days_until_flight(flight_date, today=None):
    today = today or date.today()
    return (flight_date - today).days


def add_months(start, months):
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def reschedule_window(booking, today=None):
    """Returns the (earliest, latest) dates a booking may be moved to."""
    today = today or date.today()
    return booking.flight_date + timedelta(days=1), add_months(today, RESCHEDULE_WINDOW_MONTHS)


def _require_flight_date(booking):
    if booking.flight_date is None:
        raise PolicyViolation("Booking has no flight date; it cannot be changed.")


def can_cancel(booking, today=None):
    if booking.status == BookingStatus.CANCELLED or booking.flight_date is None:
        return False
    return days_until_flight(booking.flight_date, today) > CANCELLATION_CUTOFF_DAYS


def can_reschedule(booking, today=None):
    if booking.status != BookingStatus.CONFIRMED or booking.flight_date is None:
        return False
    return days_until_flight(booking.flight_date, today) > RESCHEDULE_CUTOFF_DAYS


def confirm(booking):
    """Marks a pending booking as paid for."""
    check_transition(booking.status, BookingStatus.CONFIRMED)
    if booking.status != BookingStatus.PENDING:
        raise InvalidTransition("Only pending bookings can be confirmed by a payment.")
    booking.status = BookingStatus.CONFIRMED
    logger.info("Booking %s confirmed", booking.id)


def cancel(booking, today=None, enforce_cutoff=True):
    """
    Cancels a booking. Returns False when the booking was already cancelled,
    in which case nothing changes.
    """
    if booking.status == BookingStatus.CANCELLED:
        return False

    check_transition(booking.status, BookingStatus.CANCELLED)
    if enforce_cutoff:
        _require_flight_date(booking)
        days_left = days_until_flight(booking.flight_date, today)
        if days_left <= CANCELLATION_CUTOFF_DAYS:
            logger.warning("Cancellation of booking %s refused, %s days left", booking.id, days_left)
            raise PolicyViolation(
                f"Bookings can only be cancelled at least {CANCELLATION_CUTOFF_DAYS} days "
                f"before the flight. Your flight is in {days_left} days."
            )

    booking.status = BookingStatus.CANCELLED
    logger.info("Booking %s cancelled", booking.id)
    return True


def reschedule(booking, flight, today=None):
    """
    Moves a confirmed booking onto another flight in place. The previous
    flight details are overwritten. Returns the price difference
    (new amount minus old amount).
    """
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidTransition("Cancelled bookings cannot be rescheduled.")
    if booking.status != BookingStatus.CONFIRMED:
        raise InvalidTransition("Only confirmed bookings can be rescheduled.")
    check_transition(booking.status, BookingStatus.CONFIRMED)
    _require_flight_date(booking)

    today = today or date.today()
    days_left = days_until_flight(booking.flight_date, today)
    if days_left <= RESCHEDULE_CUTOFF_DAYS:
        logger.warning("Reschedule of booking %s refused, %s days left", booking.id, days_left)
        raise PolicyViolation(
            f"Bookings can only be rescheduled at least {RESCHEDULE_CUTOFF_DAYS} day "
            f"before the flight. Your flight is in {days_left} days."
        )

    if not is_bookable(flight):
        raise PolicyViolation("The selected flight is not available.")

    new_date = flight.flight_date
    if new_date <= booking.flight_date:
        raise PolicyViolation("New flight date must be after your current flight date.")
    _, latest = reschedule_window(booking, today)
    if new_date > latest:
        raise PolicyViolation(
            f"New flight date must be within {RESCHEDULE_WINDOW_MONTHS} months from today."
        )

    old_amount = booking.amount or 0
    apply_flight(booking, flight)
    logger.info(
        "Booking %s rescheduled to flight %s on %s", booking.id, flight.flight_number, new_date
    )
    return round((booking.amount or 0) - old_amount, 2)


def set_status(booking, target, today=None):
    """
    Admin status edit. Cancellation skips the date cutoff; confirmation
    still needs a recorded successful payment.
    """
    if target == booking.status == BookingStatus.CANCELLED:
        return False
    if target == BookingStatus.CANCELLED:
        return cancel(booking, today=today, enforce_cutoff=False)
    if target == BookingStatus.CONFIRMED:
        if booking.status == BookingStatus.CONFIRMED:
            return False
        if not booking.has_succeeded_payment():
            raise InvalidTransition("Booking has no successful payment; it cannot be confirmed.")
        confirm(booking)
        return True
    check_transition(booking.status, target)
    return False


def is_bookable(flight):
    if flight is None or flight.flight_date is None:
        return False
    if (flight.flight_status or '').lower() == 'cancelled':
        return False
    return flight.price is not None and flight.price > 0


def apply_flight(booking, flight, passenger_count=None):
    """Copies flight details onto the booking and recomputes the amount."""
    if passenger_count is None:
        passenger_count = len(booking.passengers) or 1
    booking.flight_id = flight.id
    booking.flight = flight
    booking.flight_number = flight.flight_number
    booking.departure_city = flight.departure_airport
    booking.arrival_city = flight.arrival_airport
    booking.flight_date = flight.flight_date
    booking.departure_time = flight.departure_time
    booking.arrival_time = flight.arrival_time
    booking.amount = round(flight.price * passenger_count, 2)
