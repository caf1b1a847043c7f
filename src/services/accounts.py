from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Mapping

from db.repositories import AccountRepository, TransactionRepository
from domain.account import Account, NewAccount
from domain.balance_ledger import BalanceLedger
from domain.base_types import OPENING_BALANCE_CATEGORY, AccountId, EntityType, TransferId, normalize_currency
from domain.errors import NotFoundError, parse_model

from .notifications import ChangeEvent, ChangeKind, ChangeNotifier
from .transaction_store import TransactionStore
from .transfers import TransferCoordinator

logger = logging.getLogger(__name__)


class AccountService:
    """Account registry. Balances are seeded and removed here but only ever moved by transactions."""

    def __init__(
        self,
        *,
        accounts: AccountRepository,
        transactions: TransactionRepository,
        ledger: BalanceLedger,
        store: TransactionStore,
        transfers: TransferCoordinator,
        notifier: ChangeNotifier | None = None,
        default_currency: str = "USD",
    ) -> None:
        self._accounts = accounts
        self._transactions = transactions
        self._ledger = ledger
        self._store = store
        self._transfers = transfers
        self._notifier = notifier or ChangeNotifier()
        self._default_currency = normalize_currency(default_currency)

    def add_account(self, data: NewAccount | Mapping[str, Any]) -> Account:
        new = parse_model(NewAccount, data)
        initial_currency = new.initial_currency or new.primary_currency or self._default_currency
        account = parse_model(
            Account,
            {
                "name": new.name,
                "type": new.type,
                "category": new.category,
                "primary_currency": new.primary_currency or initial_currency,
                "include_in_net_worth": new.include_in_net_worth,
                "provider_name": new.provider_name,
                "last_activity": datetime.now(timezone.utc),
            },
        )

        with self._notifier.deferred():
            self._accounts.save(account)
            self._ledger.apply_delta(account.id, account.primary_currency, Decimal(0))
            if new.initial_balance != 0:
                try:
                    self._store.add_transaction(
                        {
                            "account_id": account.id,
                            "amount": new.initial_balance,
                            "transaction_currency": initial_currency,
                            "date": new.opened_on or date.today(),
                            "description": "Opening Balance",
                            "category": OPENING_BALANCE_CATEGORY,
                        }
                    )
                except Exception:
                    self._ledger.drop_account(account.id)
                    self._accounts.remove(account.id)
                    raise
            self._notifier.publish(ChangeEvent(EntityType.ACCOUNT, account.id, ChangeKind.CREATED))

        logger.info("Created account %s (%s) in %s", account.name, account.id, account.primary_currency)
        return account

    def get_account(self, account_id: AccountId) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(entity_type=EntityType.ACCOUNT, entity_id=account_id)
        return account

    def list_accounts(self) -> list[Account]:
        return self._accounts.list()

    def update_account(self, account: Account | Mapping[str, Any]) -> Account:
        """Replace account metadata. Balances are derived and cannot be set here."""
        updated = parse_model(Account, account)
        with self._notifier.deferred(), self._ledger.locks.hold(updated.id):
            self.get_account(updated.id)
            self._accounts.save(updated)
            if not self._ledger.has_currency(updated.id, updated.primary_currency):
                self._ledger.apply_delta(updated.id, updated.primary_currency, Decimal(0))
            self._notifier.publish(ChangeEvent(EntityType.ACCOUNT, updated.id, ChangeKind.UPDATED))
        return updated

    def delete_account(self, account_id: AccountId) -> int:
        """Remove the account with its history; transfers touching it are removed on both sides.

        Returns the number of transactions deleted.
        """
        self.get_account(account_id)
        history = self._transactions.list_for_account(account_id)
        transfer_ids: set[TransferId] = {tx.linked_transfer_id for tx in history if tx.linked_transfer_id is not None}
        counterparties = {
            leg.account_id
            for transfer_id in transfer_ids
            for leg in self._transactions.list_for_transfer(transfer_id)
            if leg.account_id != account_id
        }

        deleted = 0
        with self._notifier.deferred(), self._ledger.locks.hold(account_id, *counterparties):
            for transfer_id in sorted(transfer_ids, key=str):
                deleted += self._transfers.delete_transfer(transfer_id)
            for transaction in self._transactions.list_for_account(account_id):
                self._store.delete_transaction(
                    transaction.id, account_id, as_transfer_leg=transaction.is_transfer_leg
                )
                deleted += 1
            self._ledger.drop_account(account_id)
            self._accounts.remove(account_id)
            self._notifier.publish(ChangeEvent(EntityType.ACCOUNT, account_id, ChangeKind.DELETED))

        logger.info("Deleted account %s and %d transactions", account_id, deleted)
        return deleted


__all__ = ["AccountService"]
