"""
Simulated card payments.

There is no real processor behind this module: an attempt waits for a fixed
delay, then succeeds with a configurable probability. Transaction ids and
receipt URLs are synthetic. Do not treat a "succeeded" payment here as money
having moved.
"""
import logging
import random
import string
import time
from dataclasses import dataclass

import booking_policy
from booking_policy import BookingError, InvalidTransition
from models import Booking, BookingStatus, Payment, PaymentStatus

logger = logging.getLogger(__name__)

TRANSACTION_ID_CHARS = string.ascii_lowercase + string.digits


class PaymentDeclined(BookingError):
    status_code = 402

    def __init__(self, message, payment=None):
        super().__init__(message)
        self.payment = payment


@dataclass
class PaymentOutcome:
    succeeded: bool
    transaction_id: str
    receipt_url: str


class PaymentSimulator:
    def __init__(self, success_rate=0.9, delay=3.0, currency='INR',
                 receipt_base_url='https://receipts.flynest.local/', rng=None, sleep=time.sleep):
        self.success_rate = success_rate
        self.delay = delay
        self.currency = currency
        self.receipt_base_url = receipt_base_url.rstrip('/') + '/'
        self.rng = rng or random.Random()
        self.sleep = sleep

    @classmethod
    def from_config(cls, config):
        return cls(
            success_rate=config['PAYMENT_SUCCESS_RATE'],
            delay=config['PAYMENT_DELAY_SECONDS'],
            currency=config['PAYMENT_CURRENCY'],
            receipt_base_url=config['RECEIPT_BASE_URL'],
        )

    def _token(self, length=9):
        return ''.join(self.rng.choice(TRANSACTION_ID_CHARS) for _ in range(length))

    def charge(self, amount):
        """Runs one simulated attempt for ``amount``."""
        if self.delay > 0:
            self.sleep(self.delay)
        succeeded = self.rng.random() < self.success_rate
        outcome = PaymentOutcome(
            succeeded=succeeded,
            transaction_id=f"pi_{self._token()}",
            receipt_url=f"{self.receipt_base_url}{self._token()}",
        )
        logger.info(
            "Simulated charge of %s %s: %s (%s)",
            amount, self.currency, 'succeeded' if succeeded else 'failed', outcome.transaction_id,
        )
        return outcome


def _claim_pending(session, booking):
    """
    Moves the stored row from pending to confirmed only if it is still
    pending. Another request for the same booking may have confirmed it
    while this one waited on the gateway.
    """
    claimed = (
        session.query(Booking)
        .filter(Booking.id == booking.id, Booking.status == BookingStatus.PENDING)
        .update({Booking.status: BookingStatus.CONFIRMED}, synchronize_session=False)
    )
    if not claimed:
        logger.warning("Booking %s changed status during payment", booking.id)
        raise InvalidTransition("Booking is no longer awaiting payment.")


def pay_for_booking(session, booking, payer_id, simulator, method_type='card'):
    """
    Charges a pending booking and records the attempt.

    The payment row and the booking confirmation are written in a single
    commit; if the commit fails, neither is kept and the database error
    propagates. If a concurrent request confirmed the booking first, this
    attempt is discarded with InvalidTransition. Raises PaymentDeclined
    after recording a failed attempt.
    """
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidTransition("Cannot pay for a cancelled booking.")
    if booking.status != BookingStatus.PENDING:
        raise InvalidTransition("Booking has already been paid for.")
    if not booking.amount or booking.amount <= 0:
        raise BookingError("Booking has no payable amount.")

    outcome = simulator.charge(booking.amount)
    payment = Payment(
        booking=booking,
        user_id=payer_id,
        transaction_id=outcome.transaction_id,
        amount=booking.amount,
        currency=simulator.currency,
        status=PaymentStatus.SUCCEEDED if outcome.succeeded else PaymentStatus.FAILED,
        payment_method_type=method_type,
        receipt_url=outcome.receipt_url if outcome.succeeded else None,
    )
    session.add(payment)

    try:
        if outcome.succeeded:
            _claim_pending(session, booking)
            booking_policy.confirm(booking)
        session.commit()
    except Exception:
        session.rollback()
        raise

    if not outcome.succeeded:
        raise PaymentDeclined("Payment processing failed. Please try again.", payment=payment)
    return payment


def reconcile(booking):
    """
    Confirms a pending booking that already has a succeeded payment on
    record. Returns True when the booking was changed.
    """
    if booking.status == BookingStatus.PENDING and booking.has_succeeded_payment():
        booking_policy.confirm(booking)
        return True
    return False
