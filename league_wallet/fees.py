from decimal import Decimal
from typing import NamedTuple, Optional

from league_wallet.config import PayoutType, settings
from league_wallet.helpers import from_cents, round2, to_cents


class FeeBreakdown(NamedTuple):
    fee_amount: Decimal
    net_amount: Decimal


def compute_fee(amount: Decimal, speed: PayoutType, rate: Optional[Decimal] = None) -> FeeBreakdown:
    """
    Split a gross amount into (fee, net) for the given payout speed.

    Standard is free. Instant charges ``rate`` (defaults to the configured
    instant fee rate), rounded half-up to the cent once; net is the remainder,
    so fee + net always equals amount exactly. The amount must be a positive
    whole number of cents, otherwise InvalidAmount is raised.
    """
    amount = from_cents(to_cents(amount))
    if PayoutType(speed) == PayoutType.STANDARD:
        return FeeBreakdown(round2(Decimal("0")), amount)
    fee_rate = settings.instant_fee_rate if rate is None else Decimal(rate)
    fee = round2(amount * fee_rate)
    return FeeBreakdown(fee, amount - fee)
