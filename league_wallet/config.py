from decimal import Decimal
from enum import Enum
from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    db_url: str = "sqlite:///./league_wallet.db"
    bearer_token: Optional[str] = None
    hmac_secret: str = "change_secret"
    timestamp_skew_seconds: int = 5
    instant_fee_rate: Decimal = Decimal("0.025")
    public_base_url: str = "http://localhost:8000"
    sms_api_url: AnyHttpUrl = "https://api.twilio.com"
    sms_account_sid: Optional[str] = None
    sms_auth_token: Optional[str] = None
    sms_from_number: Optional[str] = None
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    log_level: str = "INFO"

settings = Settings()


class Direction(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class SourceType(str, Enum):
    PAYOUT = "payout"
    WITHDRAWAL = "withdrawal"
    MANUAL = "manual"


class PayoutReason(str, Enum):
    FIRST_PLACE = "1st_place"
    SECOND_PLACE = "2nd_place"
    THIRD_PLACE = "3rd_place"
    WEEKLY_HIGH_SCORE = "weekly_high_score"
    REFUND = "refund"
    OTHER = "other"


class PayoutType(str, Enum):
    STANDARD = "standard"
    INSTANT = "instant"


class PayoutStatus(str, Enum):
    APPROVED = "approved"
    PAID = "paid"


class PlatformFeeStatus(str, Enum):
    PENDING = "pending"
    TRANSFERRED = "transferred"


class WithdrawalStatus(str, Enum):
    REQUESTED = "requested"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class FeeRequestStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class PaymentKind(str, Enum):
    DUES = "dues"
    LPS_FEE = "lps_fee"


class PaymentStatus(str, Enum):
    COMPLETED = "completed"


payout_reason_labels = {
    PayoutReason.FIRST_PLACE: "1st Place Prize",
    PayoutReason.SECOND_PLACE: "2nd Place Prize",
    PayoutReason.THIRD_PLACE: "3rd Place Prize",
    PayoutReason.WEEKLY_HIGH_SCORE: "Weekly High Score",
    PayoutReason.REFUND: "Refund",
    PayoutReason.OTHER: "Payout",
}

estimated_arrival_map = {
    PayoutType.STANDARD: "3-5 business days",
    PayoutType.INSTANT: "Immediate",
}
