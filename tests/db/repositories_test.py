from decimal import Decimal
from uuid import uuid4

import pytest

from db.records import SqlRecordStore
from db.repositories import AccountRepository, BalanceRepository, TransactionRepository
from domain.account import Account
from domain.balances import AccountBalances
from domain.base_types import TransferId
from domain.transaction import Transaction
from tests.constants import EUR, JAN_1, JAN_2, USD


@pytest.fixture()
def account_repo(sql_store: SqlRecordStore) -> AccountRepository:
    return AccountRepository(sql_store)


@pytest.fixture()
def transaction_repo(sql_store: SqlRecordStore) -> TransactionRepository:
    return TransactionRepository(sql_store)


@pytest.fixture()
def balance_repo(sql_store: SqlRecordStore) -> BalanceRepository:
    return BalanceRepository(sql_store)


def test_account_round_trip_and_ordering(account_repo: AccountRepository) -> None:
    zulu = account_repo.save(Account(name="zulu", type="checking", primary_currency=USD))
    alpha = account_repo.save(Account(name="Alpha", type="savings", primary_currency=EUR))

    assert account_repo.get(alpha.id) == alpha
    assert account_repo.exists(zulu.id)
    assert [account.name for account in account_repo.list()] == ["Alpha", "zulu"]

    assert account_repo.remove(zulu.id) is True
    assert account_repo.get(zulu.id) is None
    assert not account_repo.exists(zulu.id)


def test_transaction_queries(transaction_repo: TransactionRepository) -> None:
    account_id = uuid4()
    other_account_id = uuid4()
    transfer_id = TransferId(uuid4())
    plain = transaction_repo.save(
        Transaction(
            account_id=account_id,
            amount=Decimal("-12.34"),
            transaction_currency=USD,
            date=JAN_1,
            tags={"food", "weekly"},
        )
    )
    debit = transaction_repo.save(
        Transaction(
            account_id=account_id,
            amount=Decimal("-5"),
            transaction_currency=USD,
            date=JAN_2,
            linked_transfer_id=transfer_id,
        )
    )
    credit = transaction_repo.save(
        Transaction(
            account_id=other_account_id,
            amount=Decimal("5"),
            transaction_currency=USD,
            date=JAN_2,
            linked_transfer_id=transfer_id,
        )
    )

    fetched = transaction_repo.get(plain.id)
    assert fetched == plain
    assert fetched is not None and fetched.amount == Decimal("-12.34")
    assert {tx.id for tx in transaction_repo.list_for_account(account_id)} == {plain.id, debit.id}
    assert {tx.id for tx in transaction_repo.list_for_transfer(transfer_id)} == {debit.id, credit.id}

    assert transaction_repo.remove(debit.id) is True
    assert {tx.id for tx in transaction_repo.list_for_transfer(transfer_id)} == {credit.id}


def test_balance_round_trip_keeps_decimal_precision(balance_repo: BalanceRepository) -> None:
    account_id = uuid4()
    balances = AccountBalances(account_id=account_id, balances={USD: Decimal("0.10"), EUR: Decimal("-3.333")})

    balance_repo.save(balances)

    stored = balance_repo.get(account_id)
    assert stored is not None
    assert stored.balances == {EUR: Decimal("-3.333"), USD: Decimal("0.10")}
    assert balance_repo.list() == [stored]
    assert balance_repo.remove(account_id) is True
    assert balance_repo.get(account_id) is None
