import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

import httpx

from league_wallet.config import settings
from league_wallet.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class NotificationResult:
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None


def retry_after_seconds(value: Optional[str], default: float) -> float:
    """Seconds to wait for a Retry-After header given as delta-seconds or an HTTP-date."""
    if not value:
        return default
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


class SmsClient:
    """
    Twilio-compatible SMS sender. ``send`` never raises: delivery problems come
    back as a failed NotificationResult.
    """

    def __init__(
        self,
        max_retries: int | None = None,
        retry_backoff_seconds: float | None = None,
    ):
        self.client = httpx.AsyncClient(base_url=str(settings.sms_api_url), timeout=10.0)
        self.account_sid = settings.sms_account_sid
        self.auth_token = settings.sms_auth_token
        self.from_number = settings.sms_from_number
        self.max_retries = max_retries if max_retries is not None else settings.max_retries
        self.retry_backoff_seconds = retry_backoff_seconds if retry_backoff_seconds is not None else settings.retry_backoff_seconds

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def _request_with_retry(self, method: str, url: str, data: dict) -> httpx.Response:
        retries = 0
        backoff = self.retry_backoff_seconds
        while True:
            response = await self.client.request(method, url, data=data, auth=(self.account_sid, self.auth_token))
            if response.status_code == 429 or response.status_code >= 500:
                if retries >= self.max_retries:
                    return response
                wait = backoff
                if response.status_code == 429:
                    wait = retry_after_seconds(response.headers.get("Retry-After"), backoff)
                await asyncio.sleep(wait)
                retries += 1
                backoff *= 2
                continue
            return response

    async def send(self, destination: str, message: str) -> NotificationResult:
        if not self.is_configured():
            return NotificationResult(success=False, error="sms_not_configured")
        url = f"/2010-04-01/Accounts/{self.account_sid}/Messages.json"
        payload = {"To": destination, "From": self.from_number, "Body": message}
        try:
            resp = await self._request_with_retry("POST", url, data=payload)
        except httpx.HTTPError as exc:
            logger.warning("SMS request error destination=%s error=%s", destination, exc)
            return NotificationResult(success=False, error=f"sms request error: {exc}")
        if resp.status_code in (200, 201):
            try:
                message_id = resp.json().get("sid")
            except ValueError:
                message_id = None
            logger.info("SMS sent destination=%s id=%s", destination, message_id)
            return NotificationResult(success=True, id=message_id)
        logger.warning("SMS rejected destination=%s status=%s body=%s", destination, resp.status_code, resp.text)
        return NotificationResult(success=False, error=f"sms gateway returned {resp.status_code}")


sms_client = SmsClient()
