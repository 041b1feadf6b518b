import argparse
import asyncio

from league_wallet.clients.sms_client import sms_client
from league_wallet.database import SessionLocal
from league_wallet.errors import LedgerError
from league_wallet.logging_config import get_logger
from league_wallet.scores import DbScoreSource
from league_wallet.settlement import WeeklyAwardEngine

logger = get_logger(__name__)


async def settle(league_id: int, week: int) -> int:
    with SessionLocal() as db:
        engine = WeeklyAwardEngine(db, DbScoreSource(db), sms_client)
        try:
            result = await engine.settle_week(league_id, week)
        except LedgerError as exc:
            logger.error("Settlement rejected league_id=%s week=%s: %s", league_id, week, exc)
            return 2
    logger.info(
        "Settlement finished league_id=%s week=%s already_processed=%s hps_credited=%s lps_notified=%s",
        league_id,
        week,
        result.already_processed,
        result.hps_wallet_credited,
        result.lps_notification_sent,
    )
    # Non-zero while a step is still pending so schedulers retry.
    pending = (result.high_score_prize_cents > 0 and not result.hps_wallet_credited) or (
        result.low_score_fee_cents > 0 and not result.lps_notification_sent
    )
    return 1 if pending else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Settle weekly high/low scorer awards for one league week.")
    parser.add_argument("league_id", type=int)
    parser.add_argument("week", type=int)
    args = parser.parse_args()
    raise SystemExit(asyncio.run(settle(args.league_id, args.week)))
