from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator, model_validator

from .base_types import AccountId, CurrencyCode, TransferId, normalize_currency
from .transaction import Transaction


class TransferState(StrEnum):
    REQUESTED = "REQUESTED"
    LEG_A_COMMITTED = "LEG_A_COMMITTED"
    COMPLETE = "COMPLETE"
    ROLLED_BACK = "ROLLED_BACK"


class TransferRequest(BaseModel):
    from_account_id: AccountId
    to_account_id: AccountId
    amount: Decimal
    currency: CurrencyCode
    date: dt.date
    description: str = ""
    tags: set[str] = Field(default_factory=set)

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_currency(value)
        return value

    @model_validator(mode="after")
    def _validate_fields(self) -> TransferRequest:
        if not self.amount.is_finite() or self.amount <= 0:
            raise ValueError("transfer amount must be a positive finite number")
        if self.from_account_id == self.to_account_id:
            raise ValueError("cannot transfer between an account and itself")
        return self


class Transfer(BaseModel):
    """Both legs of a completed transfer; construction fails for a malformed pair."""

    id: TransferId
    debit: Transaction
    credit: Transaction
    state: TransferState = TransferState.COMPLETE

    @model_validator(mode="after")
    def _validate_pair(self) -> Transfer:
        debit, credit = self.debit, self.credit
        if debit.linked_transfer_id != self.id or credit.linked_transfer_id != self.id:
            raise ValueError("both legs must carry the transfer id")
        if debit.amount >= 0 or credit.amount != -debit.amount:
            raise ValueError("legs must have equal absolute amounts and opposite signs")
        if debit.transaction_currency != credit.transaction_currency or debit.date != credit.date:
            raise ValueError("legs must share currency and date")
        if debit.account_id == credit.account_id:
            raise ValueError("legs must belong to different accounts")
        return self

    @property
    def amount(self) -> Decimal:
        return self.credit.amount

    @property
    def currency(self) -> CurrencyCode:
        return self.credit.transaction_currency


__all__ = ["Transfer", "TransferRequest", "TransferState"]
