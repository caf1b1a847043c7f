from __future__ import annotations

from db.records import RecordStore
from domain.account import Account
from domain.balances import AccountBalances
from domain.base_types import AccountId, EntityType, TransactionId, TransferId
from domain.transaction import Transaction


class AccountRepository:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def save(self, account: Account) -> Account:
        self._store.put(EntityType.ACCOUNT, str(account.id), account.model_dump_json())
        return account

    def get(self, account_id: AccountId) -> Account | None:
        payload = self._store.get(EntityType.ACCOUNT, str(account_id))
        if payload is None:
            return None
        return Account.model_validate_json(payload)

    def exists(self, account_id: AccountId) -> bool:
        return self._store.get(EntityType.ACCOUNT, str(account_id)) is not None

    def remove(self, account_id: AccountId) -> bool:
        return self._store.delete(EntityType.ACCOUNT, str(account_id))

    def list(self) -> list[Account]:
        accounts = [Account.model_validate_json(payload) for payload in self._store.list(EntityType.ACCOUNT)]
        return sorted(accounts, key=lambda account: (account.name.lower(), str(account.id)))


class TransactionRepository:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def save(self, transaction: Transaction) -> Transaction:
        self._store.put(EntityType.TRANSACTION, str(transaction.id), transaction.model_dump_json())
        return transaction

    def get(self, transaction_id: TransactionId) -> Transaction | None:
        payload = self._store.get(EntityType.TRANSACTION, str(transaction_id))
        if payload is None:
            return None
        return Transaction.model_validate_json(payload)

    def remove(self, transaction_id: TransactionId) -> bool:
        return self._store.delete(EntityType.TRANSACTION, str(transaction_id))

    def list(self) -> list[Transaction]:
        return [Transaction.model_validate_json(payload) for payload in self._store.list(EntityType.TRANSACTION)]

    def list_for_account(self, account_id: AccountId) -> list[Transaction]:
        return [transaction for transaction in self.list() if transaction.account_id == account_id]

    def list_for_transfer(self, transfer_id: TransferId) -> list[Transaction]:
        return [transaction for transaction in self.list() if transaction.linked_transfer_id == transfer_id]


class BalanceRepository:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def get(self, account_id: AccountId) -> AccountBalances | None:
        payload = self._store.get(EntityType.BALANCE, str(account_id))
        if payload is None:
            return None
        return AccountBalances.model_validate_json(payload)

    def save(self, balances: AccountBalances) -> None:
        self._store.put(EntityType.BALANCE, str(balances.account_id), balances.model_dump_json())

    def remove(self, account_id: AccountId) -> bool:
        return self._store.delete(EntityType.BALANCE, str(account_id))

    def list(self) -> list[AccountBalances]:
        return [AccountBalances.model_validate_json(payload) for payload in self._store.list(EntityType.BALANCE)]
