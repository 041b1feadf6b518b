import csv
from io import StringIO
from typing import List, Tuple

from sqlalchemy.orm import Session

from league_wallet.helpers import from_cents
from league_wallet.ledger import LedgerStore
from league_wallet.logging_config import get_logger
from league_wallet.models import models


logger = get_logger(__name__)


def audit_ledger(db: Session) -> Tuple[str, int]:
    """
    Check every wallet against its own transaction log and return CSV text plus mismatch count.

    A wallet is reported when available != earnings - withdrawn, or when
    replaying its transactions from zero does not land on available.
    """
    ledger = LedgerStore(db)
    mismatches: List[tuple] = []
    for wallet in db.query(models.Wallet).order_by(models.Wallet.id).all():
        available = from_cents(wallet.available_balance_cents)
        derived = from_cents(wallet.total_earnings_cents - wallet.total_withdrawn_cents)
        replayed = ledger.replay_balance(wallet.id)
        if available != derived or available != replayed:
            logger.warning(
                "Ledger mismatch wallet_id=%s available=%s derived=%s replayed=%s",
                wallet.id,
                available,
                derived,
                replayed,
            )
            mismatches.append((
                wallet.id,
                wallet.league_id,
                wallet.user_id,
                available,
                derived,
                replayed,
            ))

    logger.info("Ledger audit complete with %s mismatches", len(mismatches))
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["walletId", "leagueId", "userId", "availableBalance", "earningsMinusWithdrawn", "replayedBalance"])
    for row in mismatches:
        writer.writerow(row)

    return output.getvalue(), len(mismatches)
