import logging
from decimal import Decimal

import pytest

from league_wallet.config import PayoutReason, PayoutType
from league_wallet.errors import InvalidAmount
from league_wallet.ledger import LedgerStore
from league_wallet.models import models
from league_wallet.payouts import PayoutIssuer


def test_standard_payout_credits_full_amount(db, league):
    payout = PayoutIssuer(db).issue_payout(league, "B", Decimal("75.00"), PayoutReason.FIRST_PLACE)

    assert payout.status == "approved"
    assert payout.amount_cents == 7500
    assert payout.fee_amount_cents == 0
    assert db.query(models.PlatformFee).count() == 0

    ledger = LedgerStore(db)
    wallet = ledger.get_or_create_wallet(league, "B")
    assert wallet.available_balance_cents == 7500
    [txn] = ledger.list_transactions(wallet.id)
    assert txn.source_type == "payout"
    assert txn.source_id == payout.id
    assert txn.description == "1st Place Prize - Week N/A"


def test_instant_payout_records_platform_fee(db, league):
    payout = PayoutIssuer(db).issue_payout(
        league, "A", Decimal("100.00"), PayoutReason.WEEKLY_HIGH_SCORE, week=3, payout_type=PayoutType.INSTANT
    )

    assert payout.status == "paid"
    assert payout.amount_cents == 9750
    assert payout.fee_amount_cents == 250

    wallet = LedgerStore(db).get_or_create_wallet(league, "A")
    assert wallet.available_balance_cents == 9750
    assert wallet.total_earnings_cents == 9750

    [fee] = db.query(models.PlatformFee).all()
    assert fee.payout_id == payout.id
    assert fee.amount_cents == 250
    assert fee.status == "transferred"


def test_rejected_payout_leaves_no_rows(db, league):
    with pytest.raises(InvalidAmount):
        PayoutIssuer(db).issue_payout(league, "A", Decimal("-1.00"), PayoutReason.REFUND)
    assert db.query(models.Payout).count() == 0
    assert db.query(models.WalletTransaction).count() == 0


def test_uncommitted_payout_rolls_back_with_caller(db, league):
    issuer = PayoutIssuer(db)
    issuer.issue_payout(league, "C", Decimal("10.00"), PayoutReason.OTHER, commit=False)
    db.rollback()

    assert db.query(models.Payout).count() == 0
    assert LedgerStore(db).get_or_create_wallet(league, "C").available_balance_cents == 0


def test_issued_payout_is_logged_at_info_only_when_committed(db, league, caplog):
    caplog.set_level(logging.INFO, logger="league_wallet.payouts")
    issuer = PayoutIssuer(db)

    issuer.issue_payout(league, "C", Decimal("10.00"), PayoutReason.OTHER, commit=False)
    db.rollback()
    assert not [r for r in caplog.records if r.getMessage().startswith("Issued payout")]

    issuer.issue_payout(league, "C", Decimal("10.00"), PayoutReason.OTHER)
    issued = [r for r in caplog.records if r.getMessage().startswith("Issued payout")]
    assert len(issued) == 1
    assert issued[0].levelno == logging.INFO
