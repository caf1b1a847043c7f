from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from domain.transaction import Transaction

TRANSACTION_COLUMNS = [
    "id",
    "account_id",
    "date",
    "amount",
    "transaction_currency",
    "description",
    "category",
    "tags",
    "linked_transfer_id",
]


def export_transactions_csv(transactions: Iterable[Transaction], path: Path) -> int:
    """Write transactions to ``path``; tags are pipe-separated. Returns the number of rows written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    rows = 0
    with path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.writer(fp)
        writer.writerow(TRANSACTION_COLUMNS)
        for transaction in transactions:
            writer.writerow(
                [
                    str(transaction.id),
                    str(transaction.account_id),
                    transaction.date.isoformat(),
                    str(transaction.amount),
                    transaction.transaction_currency,
                    transaction.description,
                    transaction.category,
                    "|".join(sorted(transaction.tags)),
                    str(transaction.linked_transfer_id) if transaction.linked_transfer_id else "",
                ]
            )
            rows += 1
    return rows
