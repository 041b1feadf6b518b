import asyncio
from decimal import Decimal

from league_wallet.commands import reconcile, settle_week
from league_wallet.config import SourceType
from league_wallet.ledger import LedgerStore
from league_wallet.models import models
from league_wallet.scores import record_score


def test_reconcile_command_writes_csv(monkeypatch, session_factory, league, tmp_path):
    with session_factory() as db:
        ledger = LedgerStore(db)
        wallet = ledger.get_or_create_wallet(league, "A")
        ledger.credit(wallet.id, Decimal("8.00"), SourceType.MANUAL)
        db.commit()
    monkeypatch.setattr(reconcile, "SessionLocal", session_factory)

    output = tmp_path / "audit.csv"
    assert reconcile.reconcile(str(output)) == 0
    assert output.read_text().startswith("walletId,")

    with session_factory() as db:
        db.query(models.Wallet).update({models.Wallet.total_earnings_cents: 1})
        db.commit()
    assert reconcile.reconcile(str(output)) == 1
    assert len(output.read_text().splitlines()) == 2


def test_settle_week_command_exit_codes(monkeypatch, session_factory, league, notifier):
    monkeypatch.setattr(settle_week, "SessionLocal", session_factory)
    monkeypatch.setattr(settle_week, "sms_client", notifier)

    assert asyncio.run(settle_week.settle(league, 1)) == 2

    with session_factory() as db:
        record_score(db, league, 1, "A", 100)
        record_score(db, league, 1, "C", 50)
        db.query(models.LeagueMember).filter_by(user_id="C").update({models.LeagueMember.phone_number: None})
        db.commit()
    # Prize paid but the LPS text is still pending.
    assert asyncio.run(settle_week.settle(league, 1)) == 1

    with session_factory() as db:
        db.query(models.LeagueMember).filter_by(user_id="C").update({models.LeagueMember.phone_number: "+15550000003"})
        db.commit()
    assert asyncio.run(settle_week.settle(league, 1)) == 0
    assert len(notifier.sent) == 1
