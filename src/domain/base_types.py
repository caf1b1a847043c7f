from __future__ import annotations

from enum import StrEnum
from typing import NewType
from uuid import UUID

AccountId = NewType("AccountId", UUID)
TransactionId = NewType("TransactionId", UUID)
TransferId = NewType("TransferId", UUID)
CurrencyCode = NewType("CurrencyCode", str)


class EntityType(StrEnum):
    ACCOUNT = "account"
    TRANSACTION = "transaction"
    BALANCE = "balance"


class AccountCategory(StrEnum):
    ASSET = "asset"
    LIABILITY = "liability"
    CRYPTO = "crypto"


UNCATEGORIZED = "Uncategorized"
OPENING_BALANCE_CATEGORY = "Opening Balance"
TRANSFER_CATEGORY = "Transfer"


def normalize_currency(value: str) -> CurrencyCode:
    code = value.strip().upper()
    if not code:
        raise ValueError("currency code must be non-empty")
    return CurrencyCode(code)


__all__ = [
    "AccountCategory",
    "AccountId",
    "CurrencyCode",
    "EntityType",
    "OPENING_BALANCE_CATEGORY",
    "TRANSFER_CATEGORY",
    "TransactionId",
    "TransferId",
    "UNCATEGORIZED",
    "normalize_currency",
]
