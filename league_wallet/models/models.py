from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from league_wallet.database import Base

# All money columns hold integer cents.


class League(Base):
    __tablename__ = "leagues"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    owner_id = Column(String, index=True, nullable=False)
    weekly_high_score_prize_cents = Column(Integer, nullable=False, default=0)
    weekly_low_score_fee_cents = Column(Integer, nullable=False, default=0)
    weekly_low_score_fee_enabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class LeagueMember(Base):
    __tablename__ = "league_members"
    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    display_name = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)
    __table_args__ = (UniqueConstraint("league_id", "user_id", name="uq_member_league_user"),)


class Wallet(Base):
    __tablename__ = "wallets"
    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    available_balance_cents = Column(Integer, nullable=False, default=0)
    total_earnings_cents = Column(Integer, nullable=False, default=0)
    total_withdrawn_cents = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    __table_args__ = (
        UniqueConstraint("league_id", "user_id", name="uq_wallet_league_user"),
        CheckConstraint("available_balance_cents >= 0", name="ck_wallet_available_non_negative"),
    )


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"
    id = Column(Integer, primary_key=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id", ondelete="CASCADE"), index=True, nullable=False)
    direction = Column(String, nullable=False)  # credit|debit
    amount_cents = Column(Integer, nullable=False)
    source_type = Column(String, nullable=False)  # payout|withdrawal|manual
    source_id = Column(Integer, nullable=True)
    description = Column(String, nullable=False, default="")
    balance_after_cents = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    __table_args__ = (CheckConstraint("amount_cents > 0", name="ck_wallet_txn_amount_positive"),)


class Payout(Base):
    __tablename__ = "payouts"
    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    amount_cents = Column(Integer, nullable=False)  # net of fee
    fee_amount_cents = Column(Integer, nullable=False, default=0)
    reason = Column(String, nullable=False)
    week = Column(Integer, nullable=True)
    payout_type = Column(String, nullable=False)
    status = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PlatformFee(Base):
    __tablename__ = "platform_fees"
    id = Column(Integer, primary_key=True)
    payout_id = Column(Integer, ForeignKey("payouts.id", ondelete="CASCADE"), index=True, nullable=False)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), index=True, nullable=False)
    amount_cents = Column(Integer, nullable=False)
    fee_type = Column(String, nullable=False, default="instant_payout")
    status = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class WithdrawalRequest(Base):
    __tablename__ = "withdrawal_requests"
    id = Column(Integer, primary_key=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id", ondelete="CASCADE"), index=True, nullable=False)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    amount_cents = Column(Integer, nullable=False)  # gross
    payout_type = Column(String, nullable=False)
    fee_amount_cents = Column(Integer, nullable=False, default=0)
    net_amount_cents = Column(Integer, nullable=False)
    status = Column(String, nullable=False)
    external_transfer_id = Column(String, nullable=True)
    failure_reason = Column(String, nullable=True)
    requested_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)


class WeeklyScore(Base):
    __tablename__ = "weekly_scores"
    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), index=True, nullable=False)
    week = Column(Integer, nullable=False)
    user_id = Column(String, nullable=False)
    score = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    __table_args__ = (UniqueConstraint("league_id", "week", "user_id", name="uq_score_league_week_user"),)


class WeeklyAwardEvent(Base):
    __tablename__ = "weekly_award_events"
    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    week = Column(Integer, nullable=False)
    high_score_user_id = Column(String, nullable=False)
    low_score_user_id = Column(String, nullable=False)
    high_score_prize_cents = Column(Integer, nullable=False, default=0)
    low_score_fee_cents = Column(Integer, nullable=False, default=0)  # 0 when the fee is disabled
    hps_wallet_credited = Column(Boolean, nullable=False, default=False)
    lps_notification_sent = Column(Boolean, nullable=False, default=False)
    hps_payout_id = Column(Integer, nullable=True)
    lps_request_id = Column(Integer, nullable=True)
    last_notification_error = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    __table_args__ = (UniqueConstraint("league_id", "week", name="uq_award_league_week"),)


class LpsFeeRequest(Base):
    __tablename__ = "lps_fee_requests"
    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    week = Column(Integer, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    amount_cents = Column(Integer, nullable=False)
    payment_token = Column(String, unique=True, index=True, nullable=False)
    status = Column(String, nullable=False)
    sms_sent_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    __table_args__ = (UniqueConstraint("league_id", "week", name="uq_lps_league_week"),)


class Payment(Base):
    __tablename__ = "payments"
    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    amount_cents = Column(Integer, nullable=False)
    kind = Column(String, nullable=False)  # dues|lps_fee
    status = Column(String, nullable=False)
    reference = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class IdempotencyKey(Base):
    __tablename__ = "idempotency_keys"
    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, index=True, nullable=False)
    request_hash = Column(String, nullable=False)
    response_body = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
