import hashlib
import json
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from league_wallet.errors import InvalidAmount
from league_wallet.models import models

CENT = Decimal("0.01")


def hash_request(body: dict) -> str:
    return hashlib.sha256(json.dumps(body, sort_keys=True, default=str).encode()).hexdigest()


def round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Union[Decimal, int, str]) -> int:
    """
    Convert a positive monetary amount to integer cents.

    Rejects non-positive, non-finite and sub-cent amounts with InvalidAmount.
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount(f"invalid amount: {amount!r}") from exc
    if not value.is_finite():
        raise InvalidAmount(f"invalid amount: {amount!r}")
    if value <= 0:
        raise InvalidAmount("amount must be positive")
    try:
        quantized = value.quantize(CENT)
    except InvalidOperation as exc:
        raise InvalidAmount(f"amount out of range: {amount!r}") from exc
    if value != quantized:
        raise InvalidAmount("amount must have at most two decimal places")
    return int(value * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents or 0) / 100).quantize(CENT)


def serialize_wallet(wallet: models.Wallet) -> dict:
    return {
        "id": wallet.id,
        "leagueId": wallet.league_id,
        "userId": wallet.user_id,
        "availableBalance": from_cents(wallet.available_balance_cents),
        "totalEarnings": from_cents(wallet.total_earnings_cents),
        "totalWithdrawn": from_cents(wallet.total_withdrawn_cents),
    }


def serialize_transaction(txn: models.WalletTransaction) -> dict:
    return {
        "id": txn.id,
        "walletId": txn.wallet_id,
        "direction": txn.direction,
        "amount": from_cents(txn.amount_cents),
        "sourceType": txn.source_type,
        "sourceId": txn.source_id,
        "description": txn.description,
        "balanceAfter": from_cents(txn.balance_after_cents),
        "createdAt": txn.created_at.isoformat() if txn.created_at else None,
    }


def serialize_payout(payout: models.Payout) -> dict:
    return {
        "id": payout.id,
        "leagueId": payout.league_id,
        "userId": payout.user_id,
        "amount": from_cents(payout.amount_cents),
        "feeAmount": from_cents(payout.fee_amount_cents),
        "reason": payout.reason,
        "week": payout.week,
        "payoutType": payout.payout_type,
        "status": payout.status,
    }


def serialize_withdrawal(withdrawal: models.WithdrawalRequest) -> dict:
    return {
        "id": withdrawal.id,
        "walletId": withdrawal.wallet_id,
        "leagueId": withdrawal.league_id,
        "userId": withdrawal.user_id,
        "amount": from_cents(withdrawal.amount_cents),
        "payoutType": withdrawal.payout_type,
        "feeAmount": from_cents(withdrawal.fee_amount_cents),
        "netAmount": from_cents(withdrawal.net_amount_cents),
        "status": withdrawal.status,
        "externalTransferId": withdrawal.external_transfer_id,
        "failureReason": withdrawal.failure_reason,
        "requestedAt": withdrawal.requested_at.isoformat() if withdrawal.requested_at else None,
        "processedAt": withdrawal.processed_at.isoformat() if withdrawal.processed_at else None,
    }


def serialize_fee_request(fee_request: models.LpsFeeRequest) -> dict:
    return {
        "id": fee_request.id,
        "leagueId": fee_request.league_id,
        "week": fee_request.week,
        "userId": fee_request.user_id,
        "amount": from_cents(fee_request.amount_cents),
        "status": fee_request.status,
    }


def cents_of(amount: Decimal) -> int:
    """Integer cents of an amount that may be zero, e.g. a fee."""
    return int(round2(Decimal(amount)) * 100)
