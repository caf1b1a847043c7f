from __future__ import annotations

import logging
from decimal import Decimal
from typing import Mapping, Protocol

from .account_locks import AccountLocks
from .balances import AccountBalances, BalanceEntry
from .base_types import AccountId, CurrencyCode, normalize_currency
from .errors import ValidationError

logger = logging.getLogger(__name__)


class BalanceStore(Protocol):
    def get(self, account_id: AccountId) -> AccountBalances | None: ...

    def save(self, balances: AccountBalances) -> None: ...

    def remove(self, account_id: AccountId) -> bool: ...

    def list(self) -> list[AccountBalances]: ...


class BalanceLedger:
    """Queryable projection of per-account, per-currency balances.

    A currency entry, once created for an account, is kept even when it returns to zero,
    so the set of currencies an account has touched stays discoverable.
    """

    def __init__(self, store: BalanceStore, *, locks: AccountLocks | None = None) -> None:
        self._store = store
        self.locks = locks or AccountLocks()

    def get_balance(self, account_id: AccountId, currency: str) -> Decimal:
        current = self._store.get(account_id)
        if current is None:
            return Decimal(0)
        return current.balances.get(normalize_currency(currency), Decimal(0))

    def get_balances(self, account_id: AccountId) -> dict[CurrencyCode, Decimal]:
        current = self._store.get(account_id)
        if current is None:
            return {}
        return dict(current.balances)

    def entries(self, account_id: AccountId) -> list[BalanceEntry]:
        current = self._store.get(account_id)
        if current is None:
            return []
        return current.entries()

    def has_currency(self, account_id: AccountId, currency: str) -> bool:
        return normalize_currency(currency) in self.get_balances(account_id)

    def account_ids(self) -> list[AccountId]:
        return [balances.account_id for balances in self._store.list()]

    def apply_delta(self, account_id: AccountId, currency: str, delta: Decimal) -> Decimal:
        if not delta.is_finite():
            raise ValidationError(f"delta must be finite, got {delta}", field="delta")
        code = normalize_currency(currency)

        with self.locks.hold(account_id):
            current = self._store.get(account_id) or AccountBalances(account_id=account_id)
            updated = dict(current.balances)
            new_amount = updated.get(code, Decimal(0)) + delta
            updated[code] = new_amount
            self._store.save(AccountBalances(account_id=account_id, balances=updated))

        logger.debug("Applied %s %s to account %s -> %s", delta, code, account_id, new_amount)
        return new_amount

    def replace_account_balances(self, account_id: AccountId, balances: Mapping[str, Decimal]) -> AccountBalances:
        """Overwrite the whole balance set of one account; never merges with prior state."""
        normalized: dict[CurrencyCode, Decimal] = {}
        for currency, amount in balances.items():
            if not amount.is_finite():
                raise ValidationError(f"balance for {currency} must be finite", field="balances")
            normalized[normalize_currency(currency)] = amount

        replacement = AccountBalances(account_id=account_id, balances=normalized)
        with self.locks.hold(account_id):
            self._store.save(replacement)
        return replacement

    def drop_account(self, account_id: AccountId) -> bool:
        with self.locks.hold(account_id):
            return self._store.remove(account_id)


__all__ = ["BalanceLedger", "BalanceStore"]
