import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from league_wallet.config import PayoutType, SourceType, WithdrawalStatus
from league_wallet.errors import InsufficientBalance, InvalidStateTransition, NotFound
from league_wallet.fees import compute_fee
from league_wallet.helpers import cents_of, from_cents, to_cents
from league_wallet.ledger import LedgerStore
from league_wallet.logging_config import get_logger
from league_wallet.models import models

logger = get_logger(__name__)

allowed_transitions = {
    WithdrawalStatus.REQUESTED: {WithdrawalStatus.PROCESSING, WithdrawalStatus.COMPLETED},
    WithdrawalStatus.PROCESSING: {WithdrawalStatus.COMPLETED, WithdrawalStatus.FAILED},
    WithdrawalStatus.COMPLETED: set(),
    WithdrawalStatus.FAILED: set(),
}


class WithdrawalService:
    """
    Member cash-outs: requested -> processing -> completed|failed, or
    requested -> completed on the instant path.

    The gross amount is debited when the request is created; a later
    failure from the processor does not reverse it.
    """

    def __init__(self, db: Session, ledger: Optional[LedgerStore] = None):
        self.db = db
        self.ledger = ledger or LedgerStore(db)

    def get_withdrawal(self, withdrawal_id: int) -> models.WithdrawalRequest:
        withdrawal = self.db.get(models.WithdrawalRequest, withdrawal_id, populate_existing=True)
        if withdrawal is None:
            raise NotFound(f"withdrawal {withdrawal_id} not found")
        return withdrawal

    def request_withdrawal(
        self,
        wallet_id: int,
        amount: Decimal,
        payout_type: PayoutType = PayoutType.STANDARD,
    ) -> models.WithdrawalRequest:
        gross_cents = to_cents(amount)
        payout_type = PayoutType(payout_type)
        wallet = self.ledger.get_wallet(wallet_id)
        if gross_cents > wallet.available_balance_cents:
            raise InsufficientBalance("Insufficient balance")

        fee = compute_fee(from_cents(gross_cents), payout_type)
        try:
            withdrawal = models.WithdrawalRequest(
                wallet_id=wallet.id,
                league_id=wallet.league_id,
                user_id=wallet.user_id,
                amount_cents=gross_cents,
                payout_type=payout_type.value,
                fee_amount_cents=cents_of(fee.fee_amount),
                net_amount_cents=cents_of(fee.net_amount),
                status=WithdrawalStatus.REQUESTED.value,
            )
            self.db.add(withdrawal)
            self.db.flush()

            label = "Instant" if payout_type == PayoutType.INSTANT else "Standard"
            # The conditional debit is the authoritative balance check.
            self.ledger.debit(
                wallet.id,
                from_cents(gross_cents),
                SourceType.WITHDRAWAL,
                withdrawal.id,
                f"Withdrawal request - {label}",
            )

            if payout_type == PayoutType.INSTANT:
                self._transition(
                    withdrawal,
                    WithdrawalStatus.COMPLETED,
                    external_transfer_id=f"simulated_transfer_{uuid.uuid4().hex}",
                )
            else:
                self._transition(withdrawal, WithdrawalStatus.PROCESSING)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(withdrawal)
        logger.info(
            "Created withdrawal withdrawal_id=%s wallet_id=%s gross=%s fee=%s net=%s status=%s",
            withdrawal.id,
            wallet_id,
            from_cents(withdrawal.amount_cents),
            from_cents(withdrawal.fee_amount_cents),
            from_cents(withdrawal.net_amount_cents),
            withdrawal.status,
        )
        return withdrawal

    def complete_withdrawal(self, withdrawal_id: int, external_transfer_id: Optional[str] = None) -> models.WithdrawalRequest:
        withdrawal = self.get_withdrawal(withdrawal_id)
        self._transition(withdrawal, WithdrawalStatus.COMPLETED, external_transfer_id=external_transfer_id)
        self.db.commit()
        self.db.refresh(withdrawal)
        logger.info("Withdrawal completed withdrawal_id=%s transfer_id=%s", withdrawal_id, external_transfer_id)
        return withdrawal

    def fail_withdrawal(self, withdrawal_id: int, failure_reason: str) -> models.WithdrawalRequest:
        withdrawal = self.get_withdrawal(withdrawal_id)
        self._transition(withdrawal, WithdrawalStatus.FAILED, failure_reason=failure_reason)
        self.db.commit()
        self.db.refresh(withdrawal)
        logger.warning(
            "Withdrawal failed withdrawal_id=%s reason=%s; debit of %s stands",
            withdrawal_id,
            failure_reason,
            from_cents(withdrawal.amount_cents),
        )
        return withdrawal

    def _transition(
        self,
        withdrawal: models.WithdrawalRequest,
        target: WithdrawalStatus,
        external_transfer_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> None:
        current = WithdrawalStatus(withdrawal.status)
        if target not in allowed_transitions[current]:
            raise InvalidStateTransition(f"cannot move withdrawal from {current.value} to {target.value}")
        values = {models.WithdrawalRequest.status: target.value}
        if target in (WithdrawalStatus.COMPLETED, WithdrawalStatus.FAILED):
            values[models.WithdrawalRequest.processed_at] = datetime.now(timezone.utc)
        if external_transfer_id is not None:
            values[models.WithdrawalRequest.external_transfer_id] = external_transfer_id
        if failure_reason is not None:
            values[models.WithdrawalRequest.failure_reason] = failure_reason
        # Compare-and-set on the status so two callbacks cannot both win.
        updated = (
            self.db.query(models.WithdrawalRequest)
            .filter(models.WithdrawalRequest.id == withdrawal.id)
            .filter(models.WithdrawalRequest.status == current.value)
            .update(values, synchronize_session=False)
        )
        if updated == 0:
            self.db.rollback()
            raise InvalidStateTransition(f"withdrawal {withdrawal.id} changed state concurrently")
        self.db.expire(withdrawal)

    def list_user_withdrawals(self, user_id: str) -> List[models.WithdrawalRequest]:
        return (
            self.db.query(models.WithdrawalRequest)
            .filter(models.WithdrawalRequest.user_id == user_id)
            .order_by(models.WithdrawalRequest.id.desc())
            .all()
        )
