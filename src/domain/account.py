from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from .base_types import AccountCategory, AccountId, CurrencyCode, normalize_currency


class AccountData(BaseModel):
    name: str
    type: str
    category: AccountCategory = AccountCategory.ASSET
    primary_currency: CurrencyCode
    include_in_net_worth: bool = True
    provider_name: str | None = None
    is_active: bool = True

    @field_validator("primary_currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_currency(value)
        return value

    @model_validator(mode="after")
    def _validate_fields(self) -> AccountData:
        self.name = self.name.strip()
        self.type = self.type.strip().lower()
        if not self.name:
            raise ValueError("Account.name must be non-empty")
        if not self.type:
            raise ValueError("Account.type must be non-empty")
        return self


class Account(AccountData):
    """An account record. Balances are not stored here; the balance ledger owns them."""

    id: AccountId = AccountId(Field(default_factory=uuid4))
    last_activity: dt.datetime | None = None


class NewAccount(BaseModel):
    """Input for opening an account; the initial balance becomes an opening-balance transaction."""

    name: str
    type: str
    category: AccountCategory = AccountCategory.ASSET
    initial_currency: CurrencyCode | None = None
    initial_balance: Decimal = Decimal(0)
    primary_currency: CurrencyCode | None = None
    include_in_net_worth: bool = True
    provider_name: str | None = None
    opened_on: dt.date | None = None

    @field_validator("initial_currency", "primary_currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_currency(value)
        return value

    @model_validator(mode="after")
    def _validate_balance(self) -> NewAccount:
        if not self.initial_balance.is_finite():
            raise ValueError("initial_balance must be a finite number")
        return self


__all__ = ["Account", "AccountData", "NewAccount"]
