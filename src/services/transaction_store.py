from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping

from db.repositories import AccountRepository, TransactionRepository
from domain.balance_ledger import BalanceLedger
from domain.base_types import AccountId, CurrencyCode, EntityType, TransactionId
from domain.errors import NotFoundError, ValidationError, parse_model
from domain.transaction import Transaction, TransactionData

from .notifications import ChangeEvent, ChangeKind, ChangeNotifier

logger = logging.getLogger(__name__)

# Fields a transfer leg may change outside the transfer coordinator.
_LEG_MUTABLE_FIELDS = frozenset({"description", "category", "tags"})


class TransactionStore:
    """CRUD over transaction records; every mutation moves the balance ledger by an explicit delta."""

    def __init__(
        self,
        *,
        transactions: TransactionRepository,
        accounts: AccountRepository,
        ledger: BalanceLedger,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self._transactions = transactions
        self._accounts = accounts
        self._ledger = ledger
        self._notifier = notifier or ChangeNotifier()

    def get_transaction(self, transaction_id: TransactionId) -> Transaction:
        transaction = self._transactions.get(transaction_id)
        if transaction is None:
            raise NotFoundError(entity_type=EntityType.TRANSACTION, entity_id=transaction_id)
        return transaction

    def list_transactions(self, account_id: AccountId) -> list[Transaction]:
        """Newest first."""
        transactions = self._transactions.list_for_account(account_id)
        return sorted(transactions, key=lambda tx: (tx.date, str(tx.id)), reverse=True)

    def add_transaction(
        self,
        data: TransactionData | Mapping[str, Any],
        *,
        as_transfer_leg: bool = False,
    ) -> Transaction:
        parsed = parse_model(TransactionData, data)
        if parsed.linked_transfer_id is not None and not as_transfer_leg:
            raise ValidationError(
                "transfer legs can only be created through the transfer coordinator",
                field="linked_transfer_id",
            )
        return self._insert(Transaction.model_validate(parsed.model_dump(exclude={"id"})))

    def restore_transaction(self, transaction: Transaction, *, as_transfer_leg: bool = False) -> Transaction:
        """Re-insert a deleted transaction under its original id, moving the ledger by its amount again."""
        restored = parse_model(Transaction, transaction)
        if restored.is_transfer_leg and not as_transfer_leg:
            raise ValidationError(
                "transfer legs can only be restored through the transfer coordinator",
                field="linked_transfer_id",
            )
        return self._insert(restored)

    def _insert(self, transaction: Transaction) -> Transaction:
        with self._ledger.locks.hold(transaction.account_id):
            self._require_account(transaction.account_id)
            if self._transactions.get(transaction.id) is not None:
                raise ValidationError(f"transaction {transaction.id} already exists", field="id")
            self._transactions.save(transaction)
            try:
                self._apply_deltas([(transaction.account_id, transaction.transaction_currency, transaction.amount)])
            except Exception:
                self._transactions.remove(transaction.id)
                raise

        self._notifier.publish_all(
            [
                ChangeEvent(EntityType.TRANSACTION, transaction.id, ChangeKind.CREATED),
                ChangeEvent(EntityType.BALANCE, transaction.account_id, ChangeKind.UPDATED),
            ]
        )
        return transaction

    def update_transaction(self, transaction: Transaction | Mapping[str, Any]) -> Transaction:
        updated = parse_model(Transaction, transaction)

        while True:
            prior = self.get_transaction(updated.id)
            with self._ledger.locks.hold(prior.account_id, updated.account_id):
                current = self.get_transaction(updated.id)
                if current.account_id != prior.account_id:
                    # Moved to another account while we waited for the locks; retry with fresh ids.
                    continue
                self._require_account(updated.account_id)
                self._check_leg_update(current, updated)

                self._transactions.save(updated)
                try:
                    # Reverse the old effect and apply the new one separately: account or currency may differ.
                    self._apply_deltas(
                        [
                            (current.account_id, current.transaction_currency, -current.amount),
                            (updated.account_id, updated.transaction_currency, updated.amount),
                        ]
                    )
                except Exception:
                    self._transactions.save(current)
                    raise
                break

        events = [
            ChangeEvent(EntityType.TRANSACTION, updated.id, ChangeKind.UPDATED),
            ChangeEvent(EntityType.BALANCE, current.account_id, ChangeKind.UPDATED),
        ]
        if updated.account_id != current.account_id:
            events.append(ChangeEvent(EntityType.BALANCE, updated.account_id, ChangeKind.UPDATED))
        self._notifier.publish_all(events)
        return updated

    def delete_transaction(
        self,
        transaction_id: TransactionId,
        account_id: AccountId,
        *,
        as_transfer_leg: bool = False,
    ) -> Transaction:
        with self._ledger.locks.hold(account_id):
            current = self._transactions.get(transaction_id)
            if current is None or current.account_id != account_id:
                raise NotFoundError(entity_type=EntityType.TRANSACTION, entity_id=transaction_id)
            if current.is_transfer_leg and not as_transfer_leg:
                raise ValidationError(
                    "transfer legs can only be deleted through the transfer coordinator",
                    field="linked_transfer_id",
                )
            self._transactions.remove(transaction_id)
            try:
                self._apply_deltas([(account_id, current.transaction_currency, -current.amount)])
            except Exception:
                self._transactions.save(current)
                raise

        self._notifier.publish_all(
            [
                ChangeEvent(EntityType.TRANSACTION, transaction_id, ChangeKind.DELETED),
                ChangeEvent(EntityType.BALANCE, account_id, ChangeKind.UPDATED),
            ]
        )
        return current

    def _apply_deltas(self, deltas: list[tuple[AccountId, CurrencyCode, Decimal]]) -> None:
        """Apply deltas in order; if one fails, undo the ones already applied and re-raise."""
        applied: list[tuple[AccountId, CurrencyCode, Decimal]] = []
        try:
            for account_id, currency, delta in deltas:
                self._ledger.apply_delta(account_id, currency, delta)
                applied.append((account_id, currency, delta))
        except Exception:
            for account_id, currency, delta in reversed(applied):
                self._ledger.apply_delta(account_id, currency, -delta)
            raise

    def _require_account(self, account_id: AccountId) -> None:
        if not self._accounts.exists(account_id):
            raise NotFoundError(entity_type=EntityType.ACCOUNT, entity_id=account_id)

    @staticmethod
    def _check_leg_update(current: Transaction, updated: Transaction) -> None:
        if not current.is_transfer_leg and not updated.is_transfer_leg:
            return
        before = current.model_dump(exclude=set(_LEG_MUTABLE_FIELDS))
        after = updated.model_dump(exclude=set(_LEG_MUTABLE_FIELDS))
        if before != after:
            changed = sorted(field for field in before if before[field] != after[field])
            logger.warning("Rejected update of transfer leg %s fields=%s", current.id, changed)
            raise ValidationError(
                f"transfer leg {current.id} may only change {sorted(_LEG_MUTABLE_FIELDS)}, got {changed}",
                field=changed[0] if changed else None,
            )
