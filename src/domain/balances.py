from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from .base_types import AccountId, CurrencyCode


class BalanceEntry(BaseModel):
    """Derived (account, currency) -> amount; never authored by a user."""

    account_id: AccountId
    currency: CurrencyCode
    amount: Decimal


class AccountBalances(BaseModel):
    """The full currency -> amount set of one account, stored and replaced as a unit."""

    account_id: AccountId
    balances: dict[CurrencyCode, Decimal] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_amounts(self) -> AccountBalances:
        for currency, amount in self.balances.items():
            if not amount.is_finite():
                raise ValueError(f"balance for {currency} must be finite")
        # Stable key order keeps serialized balance sets comparable.
        self.balances = dict(sorted(self.balances.items()))
        return self

    def entries(self) -> list[BalanceEntry]:
        return [
            BalanceEntry(account_id=self.account_id, currency=currency, amount=amount)
            for currency, amount in self.balances.items()
        ]


__all__ = ["AccountBalances", "BalanceEntry"]
