import hmac
import hashlib
import json
import time
from fastapi import HTTPException, Header
from sqlalchemy.orm import Session

from league_wallet.config import settings
from league_wallet.models import models


def compute_signature(body: dict, timestamp: str) -> str:
    message = f"{timestamp}:{json.dumps(body, sort_keys=True, default=str)}".encode()
    return hmac.new(settings.hmac_secret.encode(), message, hashlib.sha256).hexdigest()


def validate_signature(body: dict, signature: str, timestamp: str):
    expected = compute_signature(body, timestamp)
    try:
        sent_at = int(timestamp)
    except ValueError:
        raise HTTPException(status_code=401, detail="invalid timestamp")
    if abs(int(time.time()) - sent_at) > settings.timestamp_skew_seconds:
        raise HTTPException(status_code=401, detail="timestamp skew")
    if not hmac.compare_digest(expected, signature):
        raise HTTPException(status_code=401, detail="invalid signature")


def require_bearer_token(authorization: str | None = Header(None, alias="Authorization")):
    """
    FastAPI dependency guarding processor callbacks and admin routes when a token is configured.
    """
    if not settings.bearer_token:
        return
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = authorization.split(" ", 1)[1].strip()
    if not hmac.compare_digest(token, settings.bearer_token):
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_acting_user(x_user_id: str | None = Header(None, alias="X-User-Id")) -> str:
    """
    The authenticated user id, set by the upstream auth layer.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


def require_league_owner(db: Session, league_id: int, user_id: str) -> models.League:
    league = db.get(models.League, league_id)
    if league is None:
        raise HTTPException(status_code=404, detail="League not found")
    if league.owner_id != user_id:
        raise HTTPException(status_code=403, detail="Only the league owner can do this")
    return league
