from datetime import datetime, timezone

from sqlalchemy.orm import Session

from league_wallet.config import FeeRequestStatus, PaymentKind
from league_wallet.errors import InvalidStateTransition, NotFound
from league_wallet.helpers import from_cents
from league_wallet.logging_config import get_logger
from league_wallet.models import models
from league_wallet.treasury import record_payment

logger = get_logger(__name__)


def get_fee_request_by_token(db: Session, token: str) -> models.LpsFeeRequest:
    fee_request = db.query(models.LpsFeeRequest).filter(models.LpsFeeRequest.payment_token == token).first()
    if fee_request is None:
        raise NotFound("Payment request not found")
    return fee_request


def pay_fee_request(db: Session, token: str) -> models.LpsFeeRequest:
    """
    Settle a low-scorer fee request after the external checkout succeeded.

    The fee becomes a completed league payment (treasury inflow). A request
    can be paid once.
    """
    fee_request = get_fee_request_by_token(db, token)
    try:
        updated = (
            db.query(models.LpsFeeRequest)
            .filter(models.LpsFeeRequest.id == fee_request.id)
            .filter(models.LpsFeeRequest.status == FeeRequestStatus.PENDING.value)
            .update(
                {
                    models.LpsFeeRequest.status: FeeRequestStatus.PAID.value,
                    models.LpsFeeRequest.paid_at: datetime.now(timezone.utc),
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise InvalidStateTransition("This payment has already been completed")
        record_payment(
            db,
            fee_request.league_id,
            fee_request.user_id,
            from_cents(fee_request.amount_cents),
            PaymentKind.LPS_FEE,
            reference=f"lps_fee_{fee_request.id}",
            commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(fee_request)
    logger.info(
        "LPS fee paid request_id=%s league_id=%s week=%s user_id=%s amount=%s",
        fee_request.id,
        fee_request.league_id,
        fee_request.week,
        fee_request.user_id,
        from_cents(fee_request.amount_cents),
    )
    return fee_request
