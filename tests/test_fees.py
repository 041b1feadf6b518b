from decimal import Decimal

import pytest

from league_wallet.config import PayoutType
from league_wallet.errors import InvalidAmount
from league_wallet.fees import compute_fee


def test_standard_is_free():
    fee, net = compute_fee(Decimal("50.00"), PayoutType.STANDARD)
    assert fee == Decimal("0.00")
    assert net == Decimal("50.00")


def test_instant_default_rate():
    fee, net = compute_fee(Decimal("100.00"), PayoutType.INSTANT)
    assert fee == Decimal("2.50")
    assert net == Decimal("97.50")


def test_fee_rounds_half_up_once():
    # 10.10 * 2.5% = 0.2525 -> 0.25; 10.30 * 2.5% = 0.2575 -> 0.26
    assert compute_fee(Decimal("10.10"), PayoutType.INSTANT).fee_amount == Decimal("0.25")
    assert compute_fee(Decimal("10.30"), PayoutType.INSTANT).fee_amount == Decimal("0.26")
    # exact half cent: 0.20 * 2.5% = 0.005 -> 0.01
    assert compute_fee(Decimal("0.20"), PayoutType.INSTANT).fee_amount == Decimal("0.01")


@pytest.mark.parametrize("amount", ["0.01", "0.19", "0.20", "1.99", "33.33", "10.10", "999.99", "12345.67"])
def test_fee_plus_net_is_exact(amount):
    gross = Decimal(amount)
    fee, net = compute_fee(gross, PayoutType.INSTANT)
    assert fee + net == gross
    assert fee == fee.quantize(Decimal("0.01"))


def test_custom_rate():
    fee, net = compute_fee(Decimal("200.00"), PayoutType.INSTANT, rate=Decimal("0.01"))
    assert (fee, net) == (Decimal("2.00"), Decimal("198.00"))


def test_accepts_plain_string_speed():
    assert compute_fee(Decimal("40.00"), "instant").fee_amount == Decimal("1.00")


def test_float_amount_is_taken_at_its_printed_value():
    fee, net = compute_fee(10.1, PayoutType.INSTANT)
    assert (fee, net) == (Decimal("0.25"), Decimal("9.85"))
    assert fee + net == Decimal("10.10")


@pytest.mark.parametrize("amount", ["10.005", "0", "-5.00", "NaN", "1E+40", 0.1 + 0.2])
def test_amounts_that_are_not_whole_cents_are_rejected(amount):
    with pytest.raises(InvalidAmount):
        compute_fee(amount, PayoutType.INSTANT)
    with pytest.raises(InvalidAmount):
        compute_fee(amount, PayoutType.STANDARD)
