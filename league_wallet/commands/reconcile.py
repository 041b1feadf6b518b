import argparse
from pathlib import Path

from league_wallet.database import SessionLocal
from league_wallet.reconciliation import audit_ledger


def reconcile(output_path: str = "ledger_audit.csv") -> int:
    with SessionLocal() as db:
        csv_text, mismatch_count = audit_ledger(db)
    Path(output_path).write_text(csv_text, newline="")
    return 1 if mismatch_count else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Replay every wallet's ledger and report mismatches.")
    parser.add_argument("--output", default="ledger_audit.csv")
    args = parser.parse_args()
    raise SystemExit(reconcile(args.output))
