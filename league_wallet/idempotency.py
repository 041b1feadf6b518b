from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from league_wallet.logging_config import get_logger
from league_wallet.models import models

logger = get_logger(__name__)


def scoped_key(user_id: str, key: str) -> str:
    return f"{user_id}:{key}"


def get_idempotent_response(db: Session, key: str, body_hash: str) -> Optional[dict]:
    existing = db.query(models.IdempotencyKey).filter_by(key=key).first()
    if existing:
        if existing.request_hash != body_hash:
            raise HTTPException(status_code=409, detail="idempotency conflict")
        return existing.response_body
    return None


def store_idempotent_response(db: Session, key: str, body_hash: str, response_body: dict) -> dict:
    record = models.IdempotencyKey(key=key, request_hash=body_hash, response_body=response_body)
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Idempotency key stored concurrently key=%s", key)
    return response_body
