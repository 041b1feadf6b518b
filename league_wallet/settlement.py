import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from league_wallet.clients.sms_client import NotificationResult
from league_wallet.config import FeeRequestStatus, PayoutReason, PayoutType, settings
from league_wallet.errors import NoScoresRecorded, NotFound
from league_wallet.helpers import from_cents
from league_wallet.logging_config import get_logger
from league_wallet.models import models
from league_wallet.payouts import PayoutIssuer
from league_wallet.scores import ScoreSource, pick_high_and_low

logger = get_logger(__name__)


class Notifier(Protocol):
    async def send(self, destination: str, message: str) -> NotificationResult:
        ...


@dataclass
class SettlementResult:
    league_id: int
    week: int
    already_processed: bool
    hps_wallet_credited: bool
    lps_notification_sent: bool
    high_scorer: str
    low_scorer: str
    high_score_prize_cents: int
    low_score_fee_cents: int
    hps_payout_id: Optional[int] = None
    lps_request_id: Optional[int] = None
    notification_error: Optional[str] = None


class WeeklyAwardEngine:
    """
    Settles one (league, week): credits the high scorer's prize and raises a
    fee request against the low scorer, then texts them a payment link.

    The weekly_award_events row is the idempotency guard. Each step commits
    its own progress, so a retried or concurrent run resumes where the last
    one stopped and never pays the prize twice. The LPS text is delivered at
    least once: its flag is only set after a successful send.
    """

    def __init__(
        self,
        db: Session,
        score_source: ScoreSource,
        notifier: Notifier,
        payouts: Optional[PayoutIssuer] = None,
    ):
        self.db = db
        self.score_source = score_source
        self.notifier = notifier
        self.payouts = payouts or PayoutIssuer(db)

    async def settle_week(self, league_id: int, week: int) -> SettlementResult:
        league = self.db.get(models.League, league_id)
        if league is None:
            raise NotFound(f"league {league_id} not found")

        event = self._find_event(league_id, week)
        if event is not None and self._is_complete(event):
            logger.info("Week already processed league_id=%s week=%s", league_id, week)
            return self._result(event, already_processed=True)

        if event is None:
            scores = self.score_source.get_scores(league_id, week)
            if not scores:
                raise NoScoresRecorded(f"No scores recorded for week {week}")
            high, low = pick_high_and_low(scores)
            event = self._create_event(league, week, high.user_id, low.user_id)

        if not event.hps_wallet_credited and event.high_score_prize_cents > 0:
            self._credit_high_scorer(event)

        if not event.lps_notification_sent and event.low_score_fee_cents > 0:
            await self._charge_low_scorer(league, event)

        return self._result(event, already_processed=False)

    def _find_event(self, league_id: int, week: int) -> Optional[models.WeeklyAwardEvent]:
        return (
            self.db.query(models.WeeklyAwardEvent)
            .filter(models.WeeklyAwardEvent.league_id == league_id)
            .filter(models.WeeklyAwardEvent.week == week)
            .populate_existing()
            .first()
        )

    @staticmethod
    def _is_complete(event: models.WeeklyAwardEvent) -> bool:
        hps_done = event.hps_wallet_credited or event.high_score_prize_cents <= 0
        lps_done = event.lps_notification_sent or event.low_score_fee_cents <= 0
        return hps_done and lps_done

    def _create_event(
        self, league: models.League, week: int, high_user_id: str, low_user_id: str
    ) -> models.WeeklyAwardEvent:
        # Prize and fee are snapshotted here; later settings changes do not
        # reach a week that has already started settling.
        fee_cents = league.weekly_low_score_fee_cents if league.weekly_low_score_fee_enabled else 0
        event = models.WeeklyAwardEvent(
            league_id=league.id,
            week=week,
            high_score_user_id=high_user_id,
            low_score_user_id=low_user_id,
            high_score_prize_cents=max(league.weekly_high_score_prize_cents or 0, 0),
            low_score_fee_cents=max(fee_cents or 0, 0),
            hps_wallet_credited=False,
            lps_notification_sent=False,
        )
        self.db.add(event)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info("Award event created concurrently league_id=%s week=%s", league.id, week)
            event = self._find_event(league.id, week)
            if event is None:
                raise
            return event
        self.db.refresh(event)
        logger.info(
            "Created award event league_id=%s week=%s high=%s low=%s prize=%s fee=%s",
            league.id,
            week,
            high_user_id,
            low_user_id,
            from_cents(event.high_score_prize_cents),
            from_cents(event.low_score_fee_cents),
        )
        return event

    def _credit_high_scorer(self, event: models.WeeklyAwardEvent) -> None:
        try:
            payout = self.payouts.issue_payout(
                event.league_id,
                event.high_score_user_id,
                from_cents(event.high_score_prize_cents),
                PayoutReason.WEEKLY_HIGH_SCORE,
                week=event.week,
                payout_type=PayoutType.STANDARD,
                commit=False,
            )
            # The flag flips in the same transaction as the credit.
            claimed = (
                self.db.query(models.WeeklyAwardEvent)
                .filter(models.WeeklyAwardEvent.id == event.id)
                .filter(models.WeeklyAwardEvent.hps_wallet_credited.is_(False))
                .update(
                    {
                        models.WeeklyAwardEvent.hps_wallet_credited: True,
                        models.WeeklyAwardEvent.hps_payout_id: payout.id,
                    },
                    synchronize_session=False,
                )
            )
            if claimed:
                self.db.commit()
                logger.info(
                    "Credited high scorer league_id=%s week=%s user_id=%s payout_id=%s amount=%s",
                    event.league_id,
                    event.week,
                    event.high_score_user_id,
                    payout.id,
                    from_cents(payout.amount_cents),
                )
            else:
                self.db.rollback()
                logger.info("High scorer already credited league_id=%s week=%s", event.league_id, event.week)
        except Exception:
            self.db.rollback()
            logger.exception("High scorer credit failed league_id=%s week=%s", event.league_id, event.week)
            raise
        self.db.refresh(event)

    def _get_or_create_fee_request(self, event: models.WeeklyAwardEvent) -> models.LpsFeeRequest:
        def find():
            return (
                self.db.query(models.LpsFeeRequest)
                .filter(models.LpsFeeRequest.league_id == event.league_id)
                .filter(models.LpsFeeRequest.week == event.week)
                .first()
            )

        fee_request = find()
        if fee_request is None:
            fee_request = models.LpsFeeRequest(
                league_id=event.league_id,
                week=event.week,
                user_id=event.low_score_user_id,
                amount_cents=event.low_score_fee_cents,
                payment_token=f"lps_{event.league_id}_{event.week}_{secrets.token_urlsafe(12)}",
                status=FeeRequestStatus.PENDING.value,
            )
            self.db.add(fee_request)
            try:
                self.db.flush()
                event.lps_request_id = fee_request.id
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                fee_request = find()
                if fee_request is None:
                    raise
            else:
                logger.info(
                    "Created LPS fee request request_id=%s league_id=%s week=%s user_id=%s amount=%s",
                    fee_request.id,
                    event.league_id,
                    event.week,
                    event.low_score_user_id,
                    from_cents(fee_request.amount_cents),
                )
        if event.lps_request_id is None:
            event.lps_request_id = fee_request.id
            self.db.commit()
        return fee_request

    async def _charge_low_scorer(self, league: models.League, event: models.WeeklyAwardEvent) -> None:
        fee_request = self._get_or_create_fee_request(event)
        member = (
            self.db.query(models.LeagueMember)
            .filter(models.LeagueMember.league_id == event.league_id)
            .filter(models.LeagueMember.user_id == event.low_score_user_id)
            .first()
        )
        phone_number = member.phone_number if member else None
        if not phone_number:
            event.last_notification_error = "no_phone"
            self.db.commit()
            logger.warning(
                "LPS notification not sent league_id=%s week=%s user_id=%s: no phone on file",
                event.league_id,
                event.week,
                event.low_score_user_id,
            )
            return

        payment_link = f"{settings.public_base_url.rstrip('/')}/pay-lps/{fee_request.payment_token}"
        message = (
            f'You had the lowest score in "{league.name}" Week {event.week}. '
            f"Pay your ${from_cents(fee_request.amount_cents)} LPS fee here: {payment_link}"
        )
        try:
            result = await self.notifier.send(phone_number, message)
        except Exception as exc:  # noqa: BLE001
            # Notification failures never abort settlement.
            result = NotificationResult(success=False, error=str(exc))

        if result.success:
            event.lps_notification_sent = True
            event.last_notification_error = None
            fee_request.sms_sent_at = datetime.now(timezone.utc)
            logger.info(
                "LPS notification sent league_id=%s week=%s user_id=%s message_id=%s",
                event.league_id,
                event.week,
                event.low_score_user_id,
                result.id,
            )
        else:
            event.last_notification_error = result.error or "unknown_error"
            logger.warning(
                "LPS notification failed league_id=%s week=%s user_id=%s error=%s",
                event.league_id,
                event.week,
                event.low_score_user_id,
                result.error,
            )
        self.db.commit()

    def _result(self, event: models.WeeklyAwardEvent, already_processed: bool) -> SettlementResult:
        return SettlementResult(
            league_id=event.league_id,
            week=event.week,
            already_processed=already_processed,
            hps_wallet_credited=bool(event.hps_wallet_credited),
            lps_notification_sent=bool(event.lps_notification_sent),
            high_scorer=event.high_score_user_id,
            low_scorer=event.low_score_user_id,
            high_score_prize_cents=event.high_score_prize_cents,
            low_score_fee_cents=event.low_score_fee_cents,
            hps_payout_id=event.hps_payout_id,
            lps_request_id=event.lps_request_id,
            notification_error=event.last_notification_error,
        )
