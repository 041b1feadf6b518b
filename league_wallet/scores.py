from typing import List, NamedTuple, Protocol, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from league_wallet.logging_config import get_logger
from league_wallet.models import models

logger = get_logger(__name__)


class ScoreEntry(NamedTuple):
    user_id: str
    score: float


class ScoreSource(Protocol):
    def get_scores(self, league_id: int, week: int) -> List[ScoreEntry]:
        ...


class DbScoreSource:
    """Reads imported weekly scores from the weekly_scores table."""

    def __init__(self, db: Session):
        self.db = db

    def get_scores(self, league_id: int, week: int) -> List[ScoreEntry]:
        rows = (
            self.db.query(models.WeeklyScore)
            .filter(models.WeeklyScore.league_id == league_id)
            .filter(models.WeeklyScore.week == week)
            .order_by(models.WeeklyScore.score.desc(), models.WeeklyScore.user_id)
            .all()
        )
        return [ScoreEntry(row.user_id, row.score) for row in rows]


def pick_high_and_low(scores: List[ScoreEntry]) -> Tuple[ScoreEntry, ScoreEntry]:
    """
    Return (high scorer, low scorer).

    Ties on the extreme score go to the lowest user_id in both directions,
    independent of the order the scores arrive in.
    """
    if not scores:
        raise ValueError("scores must not be empty")
    high = min(scores, key=lambda entry: (-entry.score, entry.user_id))
    low = min(scores, key=lambda entry: (entry.score, entry.user_id))
    return high, low


def record_score(db: Session, league_id: int, week: int, user_id: str, score: float) -> models.WeeklyScore:
    """Insert or replace a member's score for the week."""
    existing = (
        db.query(models.WeeklyScore)
        .filter_by(league_id=league_id, week=week, user_id=user_id)
        .first()
    )
    if existing:
        existing.score = score
    else:
        existing = models.WeeklyScore(league_id=league_id, week=week, user_id=user_id, score=score)
        db.add(existing)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = (
            db.query(models.WeeklyScore)
            .filter_by(league_id=league_id, week=week, user_id=user_id)
            .one()
        )
        existing.score = score
        db.commit()
    db.refresh(existing)
    logger.info("Recorded score league_id=%s week=%s user_id=%s score=%s", league_id, week, user_id, score)
    return existing
