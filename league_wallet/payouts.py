from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from league_wallet.config import (
    PayoutReason,
    PayoutStatus,
    PayoutType,
    PlatformFeeStatus,
    SourceType,
    payout_reason_labels,
)
from league_wallet.fees import compute_fee
from league_wallet.helpers import cents_of, from_cents, to_cents
from league_wallet.ledger import LedgerStore
from league_wallet.logging_config import get_logger
from league_wallet.models import models

logger = get_logger(__name__)


class PayoutIssuer:
    """
    Owner-initiated credits into a member's wallet.

    Authorization (league owner only) is enforced by the caller.
    """

    def __init__(self, db: Session, ledger: Optional[LedgerStore] = None):
        self.db = db
        self.ledger = ledger or LedgerStore(db)

    def issue_payout(
        self,
        league_id: int,
        recipient_user_id: str,
        amount: Decimal,
        reason: PayoutReason,
        week: Optional[int] = None,
        payout_type: PayoutType = PayoutType.STANDARD,
        commit: bool = True,
    ) -> models.Payout:
        """
        Create a payout and credit the recipient's wallet with the net amount.

        ``amount`` is the gross requested amount; instant payouts retain the
        fee as a PlatformFee. With ``commit=False`` the payout, the wallet
        credit and the fee stay in the caller's transaction.
        """
        gross_cents = to_cents(amount)
        reason = PayoutReason(reason)
        payout_type = PayoutType(payout_type)
        fee = compute_fee(from_cents(gross_cents), payout_type)
        fee_cents = cents_of(fee.fee_amount)
        net_cents = gross_cents - fee_cents

        wallet = self.ledger.get_or_create_wallet(league_id, recipient_user_id)
        try:
            payout = models.Payout(
                league_id=league_id,
                user_id=recipient_user_id,
                amount_cents=net_cents,
                fee_amount_cents=fee_cents,
                reason=reason.value,
                week=week,
                payout_type=payout_type.value,
                status=(PayoutStatus.PAID if payout_type == PayoutType.INSTANT else PayoutStatus.APPROVED).value,
            )
            self.db.add(payout)
            self.db.flush()

            description = f"{payout_reason_labels[reason]} - Week {week or 'N/A'}"
            self.ledger.credit(wallet.id, from_cents(net_cents), SourceType.PAYOUT, payout.id, description)

            if payout_type == PayoutType.INSTANT and fee_cents > 0:
                platform_fee = models.PlatformFee(
                    payout_id=payout.id,
                    league_id=league_id,
                    amount_cents=fee_cents,
                    status=PlatformFeeStatus.PENDING.value,
                )
                self.db.add(platform_fee)
                self.db.flush()
                # Fee settlement is delegated to the payment processor.
                platform_fee.status = PlatformFeeStatus.TRANSFERRED.value
                self.db.flush()

            if commit:
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        # Uncommitted payouts are logged by the caller once its transaction commits.
        log = logger.info if commit else logger.debug
        log(
            "Issued payout payout_id=%s league_id=%s user_id=%s reason=%s type=%s net=%s fee=%s status=%s",
            payout.id,
            league_id,
            recipient_user_id,
            reason.value,
            payout_type.value,
            from_cents(net_cents),
            from_cents(fee_cents),
            payout.status,
        )
        return payout
