from decimal import Decimal
from uuid import uuid4

import pytest

from domain.account import Account
from domain.base_types import TRANSFER_CATEGORY, AccountId, TransferId
from domain.errors import ConsistencyError, NotFoundError, TransferIntegrityError, ValidationError
from domain.transfer import TransferState
from services.ledger_app import LedgerApp
from tests.constants import EUR, JAN_1, JAN_2, USD
from tests.helpers.builders import add_tx, make_account
from tests.helpers.failing_store import (
    FailingRecordStore,
    StoreFailure,
    fail_balance_of,
    fail_transaction_of,
)


def test_create_transfer_moves_money_between_accounts(app: LedgerApp, checking: Account, savings: Account) -> None:
    add_tx(app, checking.id, "200")
    checking_before = app.get_balance(checking.id, USD)
    savings_before = app.get_balance(savings.id, USD)

    transfer = app.transfers.create_transfer(checking.id, savings.id, Decimal("50"), "usd", JAN_2, "monthly savings")

    assert transfer.state == TransferState.COMPLETE
    assert app.get_balance(checking.id, USD) == checking_before - Decimal("50")
    assert app.get_balance(savings.id, USD) == savings_before + Decimal("50")

    legs = [
        tx
        for account in (checking, savings)
        for tx in app.transactions.list_transactions(account.id)
        if tx.linked_transfer_id == transfer.id
    ]
    assert sorted(leg.amount for leg in legs) == [Decimal("-50"), Decimal("50")]
    assert {leg.category for leg in legs} == {TRANSFER_CATEGORY}
    assert {leg.description for leg in legs} == {"monthly savings"}


def test_create_transfer_in_foreign_currency(app: LedgerApp, checking: Account, euro_account: Account) -> None:
    transfer = app.transfers.create_transfer(checking.id, euro_account.id, Decimal("10"), EUR, JAN_1)

    assert transfer.currency == EUR
    assert app.get_balance(checking.id, EUR) == Decimal("-10")
    assert app.get_balance(checking.id, USD) == Decimal(0)
    assert app.get_balance(euro_account.id, EUR) == Decimal("10")


@pytest.mark.parametrize("amount", ["0", "-5", "NaN"])
def test_create_transfer_rejects_invalid_amount(
    app: LedgerApp, checking: Account, savings: Account, amount: str
) -> None:
    with pytest.raises(ValidationError):
        app.transfers.create_transfer(checking.id, savings.id, Decimal(amount), USD, JAN_1)

    assert app.transfers.list_transfers() == []


def test_create_transfer_rejects_same_account(app: LedgerApp, checking: Account) -> None:
    with pytest.raises(ValidationError):
        app.transfers.create_transfer(checking.id, checking.id, Decimal("5"), USD, JAN_1)


def test_create_transfer_requires_both_accounts(app: LedgerApp, checking: Account) -> None:
    with pytest.raises(NotFoundError):
        app.transfers.create_transfer(checking.id, AccountId(uuid4()), Decimal("5"), USD, JAN_1)

    assert app.transactions.list_transactions(checking.id) == []
    assert app.get_balance(checking.id, USD) == Decimal(0)


@pytest.mark.parametrize("predicate", [fail_transaction_of, fail_balance_of])
def test_failed_credit_leg_rolls_back_debit(
    failing_app: LedgerApp, failing_store: FailingRecordStore, predicate
) -> None:
    source = make_account(failing_app, "Source", initial_balance="100")
    target = make_account(failing_app, "Target", initial_balance="5")
    failing_store.fail_puts(predicate(target.id))

    with pytest.raises(TransferIntegrityError) as exc_info:
        failing_app.transfers.create_transfer(source.id, target.id, Decimal("40"), USD, JAN_1)

    failing_store.disarm()
    assert exc_info.value.rolled_back is True
    assert isinstance(exc_info.value.__cause__, StoreFailure)
    assert failing_app.get_balance(source.id, USD) == Decimal("100")
    assert failing_app.get_balance(target.id, USD) == Decimal("5")
    assert failing_app.transfers.list_transfers() == []
    for account in (source, target):
        assert all(not tx.is_transfer_leg for tx in failing_app.transactions.list_transactions(account.id))


def test_failed_rollback_is_reported(failing_app: LedgerApp, failing_store: FailingRecordStore) -> None:
    source = make_account(failing_app, "Source", initial_balance="100")
    target = make_account(failing_app, "Target")
    writes = {"source_balance": 0}
    fail_target_tx = fail_transaction_of(target.id)
    fail_source_balance = fail_balance_of(source.id)

    def predicate(entity_type: str, record_id: str, payload: str) -> bool:
        if fail_target_tx(entity_type, record_id, payload):
            return True
        if fail_source_balance(entity_type, record_id, payload):
            writes["source_balance"] += 1
            # Let the debit leg land, then break the compensating write.
            return writes["source_balance"] > 1
        return False

    failing_store.fail_puts(predicate)

    with pytest.raises(TransferIntegrityError) as exc_info:
        failing_app.transfers.create_transfer(source.id, target.id, Decimal("40"), USD, JAN_1)

    failing_store.disarm()
    assert exc_info.value.rolled_back is False
    # The debit leg survives, and the ledger still agrees with the surviving history.
    assert failing_app.get_balance(source.id, USD) == Decimal("60")
    assert failing_app.recalculation.detect_drift(source.id) == []
    with pytest.raises(ConsistencyError):
        failing_app.transfers.get_transfer(exc_info.value.transfer_id)


def test_delete_transfer_restores_balances(app: LedgerApp, checking: Account, savings: Account) -> None:
    transfer = app.transfers.create_transfer(checking.id, savings.id, Decimal("50"), USD, JAN_1)

    assert app.transfers.delete_transfer(transfer.id) == 2

    assert app.get_balance(checking.id, USD) == Decimal(0)
    assert app.get_balance(savings.id, USD) == Decimal(0)
    assert app.transactions.list_transactions(checking.id) == []
    assert app.transactions.list_transactions(savings.id) == []


def test_delete_transfer_twice_is_a_no_op(app: LedgerApp, checking: Account, savings: Account) -> None:
    transfer = app.transfers.create_transfer(checking.id, savings.id, Decimal("50"), USD, JAN_1)

    assert app.transfers.delete_transfer(transfer.id) == 2
    assert app.transfers.delete_transfer(transfer.id) == 0
    assert app.transfers.delete_transfer(TransferId(uuid4())) == 0


def _fail_balance_writes_after(count: int):
    """Let ``count`` balance writes through, then fail every later one."""
    seen = {"balance": 0}

    def predicate(entity_type: str, _record_id: str, _payload: str) -> bool:
        if entity_type != "balance":
            return False
        seen["balance"] += 1
        return seen["balance"] > count

    return predicate


def test_failed_leg_delete_restores_deleted_leg(failing_app: LedgerApp, failing_store: FailingRecordStore) -> None:
    source = make_account(failing_app, "Source", initial_balance="100")
    target = make_account(failing_app, "Target", initial_balance="5")
    transfer = failing_app.transfers.create_transfer(source.id, target.id, Decimal("40"), USD, JAN_1)
    # First leg goes, second leg's balance write fails once, restoring the first leg succeeds.
    failing_store.fail_puts(_fail_balance_writes_after(1), times=1)

    with pytest.raises(TransferIntegrityError) as exc_info:
        failing_app.transfers.delete_transfer(transfer.id)

    failing_store.disarm()
    assert exc_info.value.rolled_back is True
    assert exc_info.value.transfer_id == transfer.id
    assert isinstance(exc_info.value.__cause__, StoreFailure)
    restored = failing_app.transfers.get_transfer(transfer.id)
    assert (restored.debit, restored.credit) == (transfer.debit, transfer.credit)
    assert failing_app.get_balance(source.id, USD) == Decimal("60")
    assert failing_app.get_balance(target.id, USD) == Decimal("45")
    for account in (source, target):
        assert failing_app.recalculation.detect_drift(account.id) == []

    assert failing_app.transfers.delete_transfer(transfer.id) == 2


def test_failed_leg_restore_is_reported(failing_app: LedgerApp, failing_store: FailingRecordStore) -> None:
    source = make_account(failing_app, "Source", initial_balance="100")
    target = make_account(failing_app, "Target", initial_balance="5")
    transfer = failing_app.transfers.create_transfer(source.id, target.id, Decimal("40"), USD, JAN_1)
    failing_store.fail_puts(_fail_balance_writes_after(1))

    with pytest.raises(TransferIntegrityError) as exc_info:
        failing_app.transfers.delete_transfer(transfer.id)

    failing_store.disarm()
    assert exc_info.value.rolled_back is False
    # One leg is gone for good; the ledger still agrees with the surviving history.
    with pytest.raises(ConsistencyError):
        failing_app.transfers.get_transfer(transfer.id)
    for account in (source, target):
        assert failing_app.recalculation.detect_drift(account.id) == []
    assert failing_app.recalculation.recalculate_all().ok


def test_get_and_list_transfers(app: LedgerApp, checking: Account, savings: Account) -> None:
    older = app.transfers.create_transfer(checking.id, savings.id, Decimal("10"), USD, JAN_1)
    newer = app.transfers.create_transfer(savings.id, checking.id, Decimal("4"), USD, JAN_2, tags=["refund"])

    fetched = app.transfers.get_transfer(newer.id)
    assert fetched.debit.account_id == savings.id
    assert fetched.credit.account_id == checking.id
    assert fetched.credit.tags == {"refund"}
    assert [transfer.id for transfer in app.transfers.list_transfers()] == [newer.id, older.id]

    with pytest.raises(NotFoundError):
        app.transfers.get_transfer(TransferId(uuid4()))
