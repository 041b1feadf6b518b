from decimal import Decimal
from pydantic import BaseModel
from typing import Literal, Optional

from league_wallet.config import PaymentKind, PayoutReason, PayoutType


class WalletOut(BaseModel):
    id: int
    leagueId: int
    userId: str
    availableBalance: Decimal
    totalEarnings: Decimal
    totalWithdrawn: Decimal


class MemberWalletOut(WalletOut):
    displayName: Optional[str] = None


class UserWalletOut(WalletOut):
    leagueName: Optional[str] = None


class TransactionOut(BaseModel):
    id: int
    walletId: int
    direction: str
    amount: Decimal
    sourceType: str
    sourceId: Optional[int] = None
    description: str
    balanceAfter: Decimal
    createdAt: Optional[str] = None


class WalletResponse(BaseModel):
    wallet: WalletOut
    transactions: list[TransactionOut]


class TreasuryResponse(BaseModel):
    leagueId: int
    totalInflow: Decimal
    totalOutflow: Decimal
    availableBalance: Decimal
    memberWallets: list[MemberWalletOut]


class WithdrawRequest(BaseModel):
    amount: Decimal
    payoutType: PayoutType = PayoutType.STANDARD


class WithdrawalOut(BaseModel):
    id: int
    walletId: int
    leagueId: int
    userId: str
    amount: Decimal
    payoutType: str
    feeAmount: Decimal
    netAmount: Decimal
    status: str
    externalTransferId: Optional[str] = None
    failureReason: Optional[str] = None
    requestedAt: Optional[str] = None
    processedAt: Optional[str] = None


class WithdrawResponse(BaseModel):
    withdrawalRequest: WithdrawalOut
    feeAmount: Decimal
    netAmount: Decimal
    estimatedArrival: str


class WithdrawalSettlement(BaseModel):
    status: Literal["completed", "failed"]
    transferId: Optional[str] = None
    failureReason: Optional[str] = None


class PayoutRequest(BaseModel):
    leagueId: int
    userId: str
    amount: Decimal
    reason: PayoutReason
    week: Optional[int] = None
    payoutType: PayoutType = PayoutType.STANDARD


class PayoutOut(BaseModel):
    id: int
    leagueId: int
    userId: str
    amount: Decimal
    feeAmount: Decimal
    reason: str
    week: Optional[int] = None
    payoutType: str
    status: str


class ScoreRequest(BaseModel):
    week: int
    userId: str
    score: float


class ScoreOut(BaseModel):
    userId: str
    week: int
    score: float


class SettleWeekRequest(BaseModel):
    week: int


class SettleWeekResponse(BaseModel):
    leagueId: int
    week: int
    alreadyProcessed: bool
    hpsWalletCredited: bool
    lpsNotificationSent: bool
    highScorer: str
    lowScorer: str
    highScorePrize: Decimal
    lowScoreFee: Decimal
    hpsPayoutId: Optional[int] = None
    lpsRequestId: Optional[int] = None
    notificationError: Optional[str] = None


class FeeRequestOut(BaseModel):
    id: int
    leagueId: int
    leagueName: Optional[str] = None
    week: int
    userId: str
    amount: Decimal
    status: str


class PaymentWebhook(BaseModel):
    leagueId: int
    userId: str
    amount: Decimal
    reference: str
    kind: PaymentKind = PaymentKind.DUES
