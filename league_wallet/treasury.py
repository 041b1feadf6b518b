from decimal import Decimal

from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from league_wallet.config import PaymentKind, PaymentStatus, PayoutStatus
from league_wallet.errors import NotFound
from league_wallet.helpers import from_cents, serialize_wallet, to_cents
from league_wallet.logging_config import get_logger
from league_wallet.models import models

logger = get_logger(__name__)


class TreasuryAggregator:
    """Read-only league rollup: money in, money out and member wallets."""

    def __init__(self, db: Session):
        self.db = db

    def total_inflow(self, league_id: int) -> Decimal:
        cents = (
            self.db.query(func.coalesce(func.sum(models.Payment.amount_cents), 0))
            .filter(models.Payment.league_id == league_id)
            .filter(models.Payment.status == PaymentStatus.COMPLETED.value)
            .scalar()
        )
        return from_cents(cents)

    def total_outflow(self, league_id: int) -> Decimal:
        # A paid payout leaves the treasury gross: net to the member plus the platform fee.
        cents = (
            self.db.query(func.coalesce(func.sum(models.Payout.amount_cents + models.Payout.fee_amount_cents), 0))
            .filter(models.Payout.league_id == league_id)
            .filter(models.Payout.status == PayoutStatus.PAID.value)
            .scalar()
        )
        return from_cents(cents)

    def member_wallets(self, league_id: int) -> list[dict]:
        rows = (
            self.db.query(models.Wallet, models.LeagueMember.display_name)
            .outerjoin(
                models.LeagueMember,
                and_(
                    models.LeagueMember.league_id == models.Wallet.league_id,
                    models.LeagueMember.user_id == models.Wallet.user_id,
                ),
            )
            .filter(models.Wallet.league_id == league_id)
            .order_by(models.Wallet.id)
            .all()
        )
        return [{**serialize_wallet(wallet), "displayName": display_name} for wallet, display_name in rows]

    def summary(self, league_id: int) -> dict:
        if self.db.get(models.League, league_id) is None:
            raise NotFound(f"league {league_id} not found")
        inflow = self.total_inflow(league_id)
        outflow = self.total_outflow(league_id)
        return {
            "leagueId": league_id,
            "totalInflow": inflow,
            "totalOutflow": outflow,
            "availableBalance": inflow - outflow,
            "memberWallets": self.member_wallets(league_id),
        }


def record_payment(
    db: Session,
    league_id: int,
    user_id: str,
    amount: Decimal,
    kind: PaymentKind,
    reference: str,
    commit: bool = True,
) -> models.Payment:
    """Store a completed inbound payment; a repeated reference returns the original row."""
    existing = db.query(models.Payment).filter(models.Payment.reference == reference).first()
    if existing:
        return existing
    if db.get(models.League, league_id) is None:
        raise NotFound(f"league {league_id} not found")
    payment = models.Payment(
        league_id=league_id,
        user_id=user_id,
        amount_cents=to_cents(amount),
        kind=PaymentKind(kind).value,
        status=PaymentStatus.COMPLETED.value,
        reference=reference,
    )
    db.add(payment)
    if not commit:
        db.flush()
        return payment
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return db.query(models.Payment).filter(models.Payment.reference == reference).one()
    db.refresh(payment)
    logger.info(
        "Recorded payment payment_id=%s league_id=%s user_id=%s kind=%s amount=%s",
        payment.id,
        league_id,
        user_id,
        payment.kind,
        from_cents(payment.amount_cents),
    )
    return payment
