from decimal import Decimal

import pytest

from league_wallet.config import PayoutType, SourceType, WithdrawalStatus
from league_wallet.errors import InsufficientBalance, InvalidAmount, InvalidStateTransition
from league_wallet.ledger import LedgerStore
from league_wallet.models import models
from league_wallet.withdrawals import WithdrawalService


@pytest.fixture
def funded_wallet(db, league):
    ledger = LedgerStore(db)
    wallet = ledger.get_or_create_wallet(league, "A")
    ledger.credit(wallet.id, Decimal("50.00"), SourceType.PAYOUT)
    db.commit()
    return wallet.id


def test_standard_withdrawal_debits_gross_and_processes(db, funded_wallet):
    service = WithdrawalService(db)
    withdrawal = service.request_withdrawal(funded_wallet, Decimal("20.00"), PayoutType.STANDARD)

    assert withdrawal.status == WithdrawalStatus.PROCESSING.value
    assert (withdrawal.amount_cents, withdrawal.fee_amount_cents, withdrawal.net_amount_cents) == (2000, 0, 2000)
    assert withdrawal.external_transfer_id is None

    wallet = LedgerStore(db).get_wallet(funded_wallet)
    assert wallet.available_balance_cents == 3000
    assert wallet.total_withdrawn_cents == 2000

    debits = [t for t in LedgerStore(db).list_transactions(funded_wallet) if t.direction == "debit"]
    assert len(debits) == 1
    assert debits[0].source_type == "withdrawal"
    assert debits[0].source_id == withdrawal.id
    assert debits[0].amount_cents == 2000


def test_instant_withdrawal_completes_with_fee_from_gross(db, funded_wallet):
    withdrawal = WithdrawalService(db).request_withdrawal(funded_wallet, Decimal("40.00"), PayoutType.INSTANT)

    assert withdrawal.status == WithdrawalStatus.COMPLETED.value
    assert withdrawal.fee_amount_cents == 100
    assert withdrawal.net_amount_cents == 3900
    assert withdrawal.external_transfer_id.startswith("simulated_transfer_")
    assert withdrawal.processed_at is not None
    # The member is debited the gross amount.
    assert LedgerStore(db).get_wallet(funded_wallet).available_balance_cents == 1000


def test_overdraft_creates_nothing(db, funded_wallet):
    with pytest.raises(InsufficientBalance):
        WithdrawalService(db).request_withdrawal(funded_wallet, Decimal("50.01"))

    assert db.query(models.WithdrawalRequest).count() == 0
    wallet = LedgerStore(db).get_wallet(funded_wallet)
    assert wallet.available_balance_cents == 5000
    assert len(LedgerStore(db).list_transactions(funded_wallet)) == 1


def test_debit_failure_rolls_back_request(db, funded_wallet, monkeypatch):
    service = WithdrawalService(db)

    def failing_debit(*args, **kwargs):
        raise InsufficientBalance("Insufficient balance")

    monkeypatch.setattr(service.ledger, "debit", failing_debit)
    with pytest.raises(InsufficientBalance):
        service.request_withdrawal(funded_wallet, Decimal("10.00"))

    assert db.query(models.WithdrawalRequest).count() == 0
    assert LedgerStore(db).get_wallet(funded_wallet).available_balance_cents == 5000


def test_invalid_amount(db, funded_wallet):
    with pytest.raises(InvalidAmount):
        WithdrawalService(db).request_withdrawal(funded_wallet, Decimal("0"))


def test_processing_to_completed(db, funded_wallet):
    service = WithdrawalService(db)
    withdrawal = service.request_withdrawal(funded_wallet, Decimal("5.00"))

    done = service.complete_withdrawal(withdrawal.id, "tr_123")
    assert done.status == WithdrawalStatus.COMPLETED.value
    assert done.external_transfer_id == "tr_123"
    assert done.processed_at is not None

    with pytest.raises(InvalidStateTransition):
        service.fail_withdrawal(withdrawal.id, "bank rejected")
    assert service.get_withdrawal(withdrawal.id).status == WithdrawalStatus.COMPLETED.value


def test_failed_transfer_keeps_debit(db, funded_wallet):
    service = WithdrawalService(db)
    withdrawal = service.request_withdrawal(funded_wallet, Decimal("5.00"))

    failed = service.fail_withdrawal(withdrawal.id, "account closed")
    assert failed.status == WithdrawalStatus.FAILED.value
    assert failed.failure_reason == "account closed"
    assert LedgerStore(db).get_wallet(funded_wallet).available_balance_cents == 4500

    with pytest.raises(InvalidStateTransition):
        service.complete_withdrawal(withdrawal.id, "tr_late")
    assert service.get_withdrawal(withdrawal.id).status == WithdrawalStatus.FAILED.value


def test_instant_withdrawal_is_terminal(db, funded_wallet):
    service = WithdrawalService(db)
    withdrawal = service.request_withdrawal(funded_wallet, Decimal("5.00"), PayoutType.INSTANT)
    with pytest.raises(InvalidStateTransition):
        service.fail_withdrawal(withdrawal.id, "too late")


def test_list_user_withdrawals_newest_first(db, funded_wallet):
    service = WithdrawalService(db)
    first = service.request_withdrawal(funded_wallet, Decimal("1.00"))
    second = service.request_withdrawal(funded_wallet, Decimal("2.00"), PayoutType.INSTANT)
    assert [w.id for w in service.list_user_withdrawals("A")] == [second.id, first.id]
    assert service.list_user_withdrawals("B") == []
