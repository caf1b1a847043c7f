from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from .base_types import UNCATEGORIZED, AccountId, CurrencyCode, TransactionId, TransferId, normalize_currency


class TransactionData(BaseModel):
    """Caller-supplied fields of a transaction.

    Amount sign convention:
    - Positive amount is money entering the account (income, incoming transfer leg).
    - Negative amount is money leaving the account (expense, outgoing transfer leg).
    """

    account_id: AccountId
    amount: Decimal
    transaction_currency: CurrencyCode
    date: dt.date
    description: str = ""
    category: str = UNCATEGORIZED
    tags: set[str] = Field(default_factory=set)
    linked_transfer_id: TransferId | None = None

    @field_validator("transaction_currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_currency(value)
        return value

    @field_validator("tags", mode="after")
    @classmethod
    def _normalize_tags(cls, value: set[str]) -> set[str]:
        return {tag.strip() for tag in value if tag.strip()}

    @model_validator(mode="after")
    def _validate_amount(self) -> TransactionData:
        if not self.amount.is_finite():
            raise ValueError("amount must be a finite number")
        if self.amount == 0:
            raise ValueError("amount must be non-zero")
        self.category = self.category.strip() or UNCATEGORIZED
        return self


class Transaction(TransactionData):
    id: TransactionId = TransactionId(Field(default_factory=uuid4))

    @property
    def is_transfer_leg(self) -> bool:
        return self.linked_transfer_id is not None


__all__ = ["Transaction", "TransactionData"]
