# flake8: noqa E402
# Rebuild every account's balances from its transaction history, e.g.:
# python scripts/recalculate_balances.py --db-file artifacts/ledger.db --summary
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

# Ensure the src directory is importable when the script is invoked via python directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from config import config
from services.ledger_app import open_sqlite_app
from services.recalculation import RecalculationReport
from utils.balance_summary import compute_balance_summary, render_balance_summary


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recalculate account balances from transaction history.")
    parser.add_argument("--db-file", type=Path, default=None, help="SQLite file (default: LEDGER_DB_FILE setting).")
    parser.add_argument(
        "--drifted-only",
        action="store_true",
        help="Only rebuild accounts whose ledger disagrees with their history.",
    )
    parser.add_argument("--summary", action="store_true", help="Print balances in the display currency afterwards.")
    return parser.parse_args(argv)


def print_report(report: RecalculationReport) -> None:
    print("Recalculation report:")
    print(f"  Accounts rebuilt: {len(report.recalculated)}")
    print(f"  Pending:          {len(report.pending)}")
    print(f"  Errors:           {len(report.errors)}")
    for error in report.errors:
        print(f"    - {error}")


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    args = parse_args(argv)

    settings = config()
    if args.db_file is not None:
        settings = settings.model_copy(update={"db_file": args.db_file})
    app = open_sqlite_app(settings)

    if args.drifted_only:
        report = app.recalculation.repair_drifted()
    else:
        report = app.recalculation.recalculate_all()
    print_report(report)

    if args.summary:
        summary = compute_balance_summary(
            app.accounts.list_accounts(),
            ledger=app.ledger,
            converter=app.converter,
            display_currency=settings.display_currency,
        )
        print(render_balance_summary(summary))

    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
