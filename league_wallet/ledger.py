from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from league_wallet.config import Direction, SourceType
from league_wallet.errors import InsufficientBalance, NotFound
from league_wallet.helpers import from_cents, to_cents
from league_wallet.logging_config import get_logger
from league_wallet.models import models

logger = get_logger(__name__)


class LedgerStore:
    """
    Sole owner of wallet balances and the append-only transaction log.

    Balance changes are single arithmetic UPDATE statements, so the read and
    write of a balance can never interleave with another mutation of the same
    wallet. ``credit``/``debit`` flush but do not commit: the caller's unit of
    work decides when the balance change and its log row become durable, and
    both land or neither does.
    """

    def __init__(self, db: Session):
        self.db = db

    def _find_wallet(self, league_id: int, user_id: str) -> Optional[models.Wallet]:
        return (
            self.db.query(models.Wallet)
            .filter(models.Wallet.league_id == league_id)
            .filter(models.Wallet.user_id == user_id)
            .first()
        )

    def get_or_create_wallet(self, league_id: int, user_id: str) -> models.Wallet:
        """
        Return the member's wallet in the league, creating an empty one if absent.

        Creation commits on its own, so call this before starting a mutation.
        """
        wallet = self._find_wallet(league_id, user_id)
        if wallet:
            return wallet
        wallet = models.Wallet(
            league_id=league_id,
            user_id=user_id,
            available_balance_cents=0,
            total_earnings_cents=0,
            total_withdrawn_cents=0,
        )
        self.db.add(wallet)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a creation race; the other writer's row is the wallet.
            self.db.rollback()
            wallet = self._find_wallet(league_id, user_id)
            if wallet is None:
                raise
            return wallet
        self.db.refresh(wallet)
        logger.info("Created wallet wallet_id=%s league_id=%s user_id=%s", wallet.id, league_id, user_id)
        return wallet

    def get_wallet(self, wallet_id: int) -> models.Wallet:
        wallet = self.db.get(models.Wallet, wallet_id, populate_existing=True)
        if wallet is None:
            raise NotFound(f"wallet {wallet_id} not found")
        return wallet

    def credit(
        self,
        wallet_id: int,
        amount: Decimal,
        source_type: SourceType,
        source_id: Optional[int] = None,
        description: str = "",
    ) -> models.WalletTransaction:
        cents = to_cents(amount)
        result = self.db.execute(
            update(models.Wallet)
            .where(models.Wallet.id == wallet_id)
            .values(
                available_balance_cents=models.Wallet.available_balance_cents + cents,
                total_earnings_cents=models.Wallet.total_earnings_cents + cents,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound(f"wallet {wallet_id} not found")
        return self._append(wallet_id, Direction.CREDIT, cents, source_type, source_id, description)

    def debit(
        self,
        wallet_id: int,
        amount: Decimal,
        source_type: SourceType,
        source_id: Optional[int] = None,
        description: str = "",
    ) -> models.WalletTransaction:
        cents = to_cents(amount)
        result = self.db.execute(
            update(models.Wallet)
            .where(models.Wallet.id == wallet_id)
            .where(models.Wallet.available_balance_cents >= cents)
            .values(
                available_balance_cents=models.Wallet.available_balance_cents - cents,
                total_withdrawn_cents=models.Wallet.total_withdrawn_cents + cents,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            exists = self.db.execute(select(models.Wallet.id).where(models.Wallet.id == wallet_id)).first()
            if exists is None:
                raise NotFound(f"wallet {wallet_id} not found")
            raise InsufficientBalance("Insufficient balance")
        return self._append(wallet_id, Direction.DEBIT, cents, source_type, source_id, description)

    def _append(
        self,
        wallet_id: int,
        direction: Direction,
        cents: int,
        source_type: SourceType,
        source_id: Optional[int],
        description: str,
    ) -> models.WalletTransaction:
        wallet = self.db.get(models.Wallet, wallet_id, populate_existing=True)
        txn = models.WalletTransaction(
            wallet_id=wallet_id,
            direction=Direction(direction).value,
            amount_cents=cents,
            source_type=SourceType(source_type).value,
            source_id=source_id,
            description=description,
            balance_after_cents=wallet.available_balance_cents,
        )
        self.db.add(txn)
        self.db.flush()
        logger.info(
            "Wallet %s wallet_id=%s amount=%s source=%s:%s balance_after=%s",
            txn.direction,
            wallet_id,
            from_cents(cents),
            txn.source_type,
            source_id,
            from_cents(txn.balance_after_cents),
        )
        return txn

    def list_transactions(self, wallet_id: int) -> List[models.WalletTransaction]:
        return (
            self.db.query(models.WalletTransaction)
            .filter(models.WalletTransaction.wallet_id == wallet_id)
            .order_by(models.WalletTransaction.id.desc())
            .all()
        )

    def replay_balance(self, wallet_id: int) -> Decimal:
        """Rebuild the available balance from the log, oldest entry first."""
        entries = (
            self.db.query(models.WalletTransaction)
            .filter(models.WalletTransaction.wallet_id == wallet_id)
            .order_by(models.WalletTransaction.id.asc())
            .all()
        )
        cents = 0
        for entry in entries:
            cents += entry.amount_cents if entry.direction == Direction.CREDIT.value else -entry.amount_cents
        return from_cents(cents)

    def list_user_wallets(self, user_id: str) -> List[models.Wallet]:
        return (
            self.db.query(models.Wallet)
            .filter(models.Wallet.user_id == user_id)
            .order_by(models.Wallet.id)
            .all()
        )

    def list_league_wallets(self, league_id: int) -> List[models.Wallet]:
        return (
            self.db.query(models.Wallet)
            .filter(models.Wallet.league_id == league_id)
            .order_by(models.Wallet.id)
            .all()
        )
