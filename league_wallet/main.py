from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from league_wallet.clients.sms_client import sms_client
from league_wallet.config import estimated_arrival_map
from league_wallet.database import engine, get_db
from league_wallet.errors import (
    InsufficientBalance,
    InvalidAmount,
    InvalidStateTransition,
    LedgerError,
    NoScoresRecorded,
    NotFound,
)
from league_wallet.fee_requests import get_fee_request_by_token, pay_fee_request
from league_wallet.helpers import (
    from_cents,
    hash_request,
    serialize_fee_request,
    serialize_payout,
    serialize_transaction,
    serialize_wallet,
    serialize_withdrawal,
)
from league_wallet.idempotency import get_idempotent_response, scoped_key, store_idempotent_response
from league_wallet.ledger import LedgerStore
from league_wallet.logging_config import get_logger
from league_wallet.models import models
from league_wallet.payouts import PayoutIssuer
from league_wallet.reconciliation import audit_ledger
from league_wallet.schemas.app_schemas import (
    FeeRequestOut,
    PaymentWebhook,
    PayoutOut,
    PayoutRequest,
    ScoreOut,
    ScoreRequest,
    SettleWeekRequest,
    SettleWeekResponse,
    TransactionOut,
    TreasuryResponse,
    UserWalletOut,
    WalletResponse,
    WithdrawalOut,
    WithdrawalSettlement,
    WithdrawRequest,
    WithdrawResponse,
)
from league_wallet.scores import DbScoreSource, record_score
from league_wallet.security import (
    get_acting_user,
    require_bearer_token,
    require_league_owner,
    validate_signature,
)
from league_wallet.settlement import WeeklyAwardEngine
from league_wallet.treasury import TreasuryAggregator, record_payment
from league_wallet.withdrawals import WithdrawalService


logger = get_logger(__name__)

app = FastAPI(title="League Wallet")

error_status_map = {
    InvalidAmount: 400,
    InsufficientBalance: 400,
    NoScoresRecorded: 400,
    NotFound: 404,
    InvalidStateTransition: 409,
}


def get_notifier():
    return sms_client


def get_score_source(db: Session = Depends(get_db)):
    return DbScoreSource(db)


@app.on_event("startup")
async def startup_event():
    logger.info("Creating league wallet tables")
    models.Base.metadata.create_all(bind=engine)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = error_status_map.get(type(exc), 400)
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def _check_signature(body: dict, x_signature: str | None, x_timestamp: str | None):
    if x_signature and x_timestamp:
        validate_signature(body, x_signature, x_timestamp)


# === WALLETS ===

@app.get("/wallet/{league_id}", response_model=WalletResponse)
async def get_wallet(
    league_id: int,
    user_id: str = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    if db.get(models.League, league_id) is None:
        raise NotFound(f"league {league_id} not found")
    ledger = LedgerStore(db)
    wallet = ledger.get_or_create_wallet(league_id, user_id)
    return {
        "wallet": serialize_wallet(wallet),
        "transactions": [serialize_transaction(t) for t in ledger.list_transactions(wallet.id)],
    }


@app.get("/wallets/me", response_model=list[UserWalletOut])
async def my_wallets(user_id: str = Depends(get_acting_user), db: Session = Depends(get_db)):
    wallets = LedgerStore(db).list_user_wallets(user_id)
    result = []
    for wallet in wallets:
        league = db.get(models.League, wallet.league_id)
        result.append({**serialize_wallet(wallet), "leagueName": league.name if league else None})
    return result


@app.get("/wallets/{wallet_id}/transactions", response_model=list[TransactionOut])
async def wallet_transactions(
    wallet_id: int,
    user_id: str = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    ledger = LedgerStore(db)
    wallet = ledger.get_wallet(wallet_id)
    if wallet.user_id != user_id:
        raise HTTPException(status_code=403, detail="Access denied")
    return [serialize_transaction(t) for t in ledger.list_transactions(wallet_id)]


@app.post("/wallets/{wallet_id}/withdraw", response_model=WithdrawResponse, status_code=201)
async def withdraw(
    wallet_id: int,
    request: WithdrawRequest,
    user_id: str = Depends(get_acting_user),
    db: Session = Depends(get_db),
    idempotency_key: str | None = Header(None),
):
    ledger = LedgerStore(db)
    wallet = ledger.get_wallet(wallet_id)
    if wallet.user_id != user_id:
        raise HTTPException(status_code=403, detail="Access denied")
    body = {"walletId": wallet_id, **request.model_dump(mode="json")}
    body_hash = hash_request(body)
    if idempotency_key:
        existing = get_idempotent_response(db, scoped_key(user_id, idempotency_key), body_hash)
        if existing:
            return existing
    withdrawal = WithdrawalService(db, ledger).request_withdrawal(wallet_id, request.amount, request.payoutType)
    response = jsonable_encoder(
        WithdrawResponse(
            withdrawalRequest=serialize_withdrawal(withdrawal),
            feeAmount=from_cents(withdrawal.fee_amount_cents),
            netAmount=from_cents(withdrawal.net_amount_cents),
            estimatedArrival=estimated_arrival_map[request.payoutType],
        )
    )
    if idempotency_key:
        store_idempotent_response(db, scoped_key(user_id, idempotency_key), body_hash, response)
    return response


@app.get("/withdrawals/me", response_model=list[WithdrawalOut])
async def my_withdrawals(user_id: str = Depends(get_acting_user), db: Session = Depends(get_db)):
    return [serialize_withdrawal(w) for w in WithdrawalService(db).list_user_withdrawals(user_id)]


@app.post("/withdrawals/{withdrawal_id}/settlement", response_model=WithdrawalOut)
async def withdrawal_settlement(
    withdrawal_id: int,
    payload: WithdrawalSettlement,
    _auth=Depends(require_bearer_token),
    db: Session = Depends(get_db),
    x_signature: str | None = Header(None),
    x_timestamp: str | None = Header(None),
):
    _check_signature(payload.model_dump(), x_signature, x_timestamp)
    logger.info("Received withdrawal settlement withdrawal_id=%s status=%s", withdrawal_id, payload.status)
    service = WithdrawalService(db)
    if payload.status == "completed":
        withdrawal = service.complete_withdrawal(withdrawal_id, payload.transferId)
    else:
        withdrawal = service.fail_withdrawal(withdrawal_id, payload.failureReason or "transfer failed")
    return serialize_withdrawal(withdrawal)


# === PAYOUTS ===

@app.post("/payouts", response_model=PayoutOut, status_code=201)
async def create_payout(
    request: PayoutRequest,
    user_id: str = Depends(get_acting_user),
    db: Session = Depends(get_db),
    idempotency_key: str | None = Header(None),
):
    require_league_owner(db, request.leagueId, user_id)
    body_hash = hash_request(request.model_dump(mode="json"))
    if idempotency_key:
        existing = get_idempotent_response(db, scoped_key(user_id, idempotency_key), body_hash)
        if existing:
            return existing
    payout = PayoutIssuer(db).issue_payout(
        request.leagueId,
        request.userId,
        request.amount,
        request.reason,
        week=request.week,
        payout_type=request.payoutType,
    )
    response = jsonable_encoder(PayoutOut(**serialize_payout(payout)))
    if idempotency_key:
        store_idempotent_response(db, scoped_key(user_id, idempotency_key), body_hash, response)
    return response


# === LEAGUES ===

@app.get("/leagues/{league_id}/treasury", response_model=TreasuryResponse)
async def league_treasury(
    league_id: int,
    user_id: str = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    require_league_owner(db, league_id, user_id)
    return TreasuryAggregator(db).summary(league_id)


@app.post("/leagues/{league_id}/scores", response_model=ScoreOut, status_code=201)
async def add_score(
    league_id: int,
    request: ScoreRequest,
    user_id: str = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    require_league_owner(db, league_id, user_id)
    score = record_score(db, league_id, request.week, request.userId, request.score)
    return {"userId": score.user_id, "week": score.week, "score": score.score}


@app.get("/leagues/{league_id}/scores/{week}", response_model=list[ScoreOut])
async def list_scores(
    league_id: int,
    week: int,
    _user_id: str = Depends(get_acting_user),
    score_source: DbScoreSource = Depends(get_score_source),
):
    return [{"userId": s.user_id, "week": week, "score": s.score} for s in score_source.get_scores(league_id, week)]


@app.post("/leagues/{league_id}/settle-week", response_model=SettleWeekResponse)
async def settle_week(
    league_id: int,
    request: SettleWeekRequest,
    user_id: str = Depends(get_acting_user),
    db: Session = Depends(get_db),
    score_source=Depends(get_score_source),
    notifier=Depends(get_notifier),
):
    require_league_owner(db, league_id, user_id)
    result = await WeeklyAwardEngine(db, score_source, notifier).settle_week(league_id, request.week)
    return {
        "leagueId": result.league_id,
        "week": result.week,
        "alreadyProcessed": result.already_processed,
        "hpsWalletCredited": result.hps_wallet_credited,
        "lpsNotificationSent": result.lps_notification_sent,
        "highScorer": result.high_scorer,
        "lowScorer": result.low_scorer,
        "highScorePrize": from_cents(result.high_score_prize_cents),
        "lowScoreFee": from_cents(result.low_score_fee_cents),
        "hpsPayoutId": result.hps_payout_id,
        "lpsRequestId": result.lps_request_id,
        "notificationError": result.notification_error,
    }


# === LPS FEE PAYMENTS ===

def _fee_request_response(db: Session, fee_request: models.LpsFeeRequest) -> dict:
    league = db.get(models.League, fee_request.league_id)
    return {**serialize_fee_request(fee_request), "leagueName": league.name if league else None}


@app.get("/lps-payment/{token}", response_model=FeeRequestOut)
async def get_lps_payment(token: str, db: Session = Depends(get_db)):
    return _fee_request_response(db, get_fee_request_by_token(db, token))


@app.post("/lps-payment/{token}/pay", response_model=FeeRequestOut)
async def pay_lps_payment(token: str, db: Session = Depends(get_db)):
    return _fee_request_response(db, pay_fee_request(db, token))


# === PROCESSOR CALLBACKS / ADMIN ===

@app.post("/webhooks/payments")
async def payment_webhook(
    payload: PaymentWebhook,
    _auth=Depends(require_bearer_token),
    db: Session = Depends(get_db),
    x_signature: str | None = Header(None),
    x_timestamp: str | None = Header(None),
):
    _check_signature(payload.model_dump(mode="json"), x_signature, x_timestamp)
    logger.info("Received payment webhook reference=%s league_id=%s", payload.reference, payload.leagueId)
    payment = record_payment(db, payload.leagueId, payload.userId, payload.amount, payload.kind, payload.reference)
    return {"status": "accepted", "paymentId": payment.id}


@app.get("/reconciliation_data")
async def download_reconciliation_csv(_auth=Depends(require_bearer_token), db: Session = Depends(get_db)):
    csv_text, mismatch_count = audit_ledger(db)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={
            "Content-Disposition": 'attachment; filename="ledger_audit.csv"',
            "X-Mismatch-Count": str(mismatch_count),
        },
    )


@app.get("/swagger", include_in_schema=False)
async def swagger_ui():
    return get_swagger_ui_html(openapi_url=str(app.openapi_url), title="League Wallet - Swagger UI")


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
