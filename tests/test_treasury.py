from decimal import Decimal

import pytest

from league_wallet.config import PaymentKind, PayoutReason, PayoutType
from league_wallet.errors import InvalidStateTransition, NotFound
from league_wallet.fee_requests import get_fee_request_by_token, pay_fee_request
from league_wallet.models import models
from league_wallet.payouts import PayoutIssuer
from league_wallet.treasury import TreasuryAggregator, record_payment


def test_empty_treasury(db, league):
    summary = TreasuryAggregator(db).summary(league)
    assert summary["totalInflow"] == Decimal("0.00")
    assert summary["totalOutflow"] == Decimal("0.00")
    assert summary["availableBalance"] == Decimal("0.00")
    assert summary["memberWallets"] == []


def test_inflow_outflow_and_member_wallets(db, league):
    record_payment(db, league, "A", Decimal("100.00"), PaymentKind.DUES, "pi_1")
    record_payment(db, league, "B", Decimal("100.00"), PaymentKind.DUES, "pi_2")
    issuer = PayoutIssuer(db)
    issuer.issue_payout(league, "A", Decimal("40.00"), PayoutReason.FIRST_PLACE, payout_type=PayoutType.INSTANT)
    # Standard payouts are still awaiting settlement and do not count as outflow.
    issuer.issue_payout(league, "B", Decimal("25.00"), PayoutReason.SECOND_PLACE)

    summary = TreasuryAggregator(db).summary(league)
    assert summary["totalInflow"] == Decimal("200.00")
    assert summary["totalOutflow"] == Decimal("40.00")
    assert summary["availableBalance"] == Decimal("160.00")

    wallets = {w["userId"]: w for w in summary["memberWallets"]}
    assert wallets["A"]["displayName"] == "Alice"
    assert wallets["A"]["availableBalance"] == Decimal("39.00")
    assert wallets["B"]["availableBalance"] == Decimal("25.00")


def test_record_payment_is_idempotent_on_reference(db, league):
    first = record_payment(db, league, "A", Decimal("20.00"), PaymentKind.DUES, "pi_dup")
    second = record_payment(db, league, "A", Decimal("20.00"), PaymentKind.DUES, "pi_dup")
    assert first.id == second.id
    assert TreasuryAggregator(db).total_inflow(league) == Decimal("20.00")


def test_unknown_league(db):
    with pytest.raises(NotFound):
        TreasuryAggregator(db).summary(404)


def test_paying_fee_request_adds_inflow_once(db, league):
    fee_request = models.LpsFeeRequest(
        league_id=league, week=1, user_id="C", amount_cents=500, payment_token="lps_tok", status="pending"
    )
    db.add(fee_request)
    db.commit()

    paid = pay_fee_request(db, "lps_tok")
    assert paid.status == "paid"
    assert paid.paid_at is not None
    assert TreasuryAggregator(db).total_inflow(league) == Decimal("5.00")
    [payment] = db.query(models.Payment).all()
    assert (payment.kind, payment.user_id) == ("lps_fee", "C")

    with pytest.raises(InvalidStateTransition):
        pay_fee_request(db, "lps_tok")
    assert TreasuryAggregator(db).total_inflow(league) == Decimal("5.00")

    with pytest.raises(NotFound):
        get_fee_request_by_token(db, "nope")
