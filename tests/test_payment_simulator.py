import random

from payment_simulator import PaymentSimulator


class FixedRandom(random.Random):
    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def test_charge_succeeds_below_success_rate():
    sleeps = []
    simulator = PaymentSimulator(success_rate=0.9, delay=3.0, rng=FixedRandom(0.5), sleep=sleeps.append)

    outcome = simulator.charge(5400)

    assert outcome.succeeded is True
    assert sleeps == [3.0]
    assert outcome.transaction_id.startswith("pi_")
    assert len(outcome.transaction_id) == 12
    assert outcome.receipt_url.startswith("https://receipts.flynest.local/")


def test_charge_fails_at_or_above_success_rate():
    simulator = PaymentSimulator(success_rate=0.9, delay=0, rng=FixedRandom(0.95))
    assert simulator.charge(5400).succeeded is False


def test_zero_delay_does_not_sleep():
    def fail(_):
        raise AssertionError("should not sleep")

    simulator = PaymentSimulator(delay=0, rng=FixedRandom(0.1), sleep=fail)
    assert simulator.charge(100).succeeded is True


def test_success_rate_is_roughly_honoured():
    simulator = PaymentSimulator(success_rate=0.9, delay=0, rng=random.Random(42))
    successes = sum(simulator.charge(100).succeeded for _ in range(2000))
    assert 1700 < successes < 1900


def test_from_config(app):
    app.config.update(PAYMENT_SUCCESS_RATE=0.25, PAYMENT_DELAY_SECONDS=0, PAYMENT_CURRENCY="INR",
                      RECEIPT_BASE_URL="https://example.test/r")
    simulator = PaymentSimulator.from_config(app.config)
    assert simulator.success_rate == 0.25
    assert simulator.currency == "INR"
    assert simulator.receipt_base_url == "https://example.test/r/"
