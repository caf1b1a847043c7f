"""
Rebuilds account balances from transaction history.

The rebuild of one account never reads the ledger's prior state: it folds the
account's surviving transactions into a fresh currency -> amount map and
overwrites the balance set in one step. Accounts are independent, so a batch
can stop between any two accounts and be resumed later.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable

from db.repositories import AccountRepository, TransactionRepository
from domain.account import Account
from domain.balance_ledger import BalanceLedger
from domain.balances import AccountBalances
from domain.base_types import AccountId, CurrencyCode, EntityType
from domain.errors import ConsistencyError, LedgerError, NotFoundError
from domain.transaction import Transaction

from .notifications import ChangeEvent, ChangeKind, ChangeNotifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceDrift:
    account_id: AccountId
    currency: CurrencyCode
    ledger_amount: Decimal
    expected_amount: Decimal

    @property
    def difference(self) -> Decimal:
        return self.ledger_amount - self.expected_amount


@dataclass
class RecalculationReport:
    recalculated: list[AccountId] = field(default_factory=list)
    pending: list[AccountId] = field(default_factory=list)
    errors: list[ConsistencyError] = field(default_factory=list)
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors and not self.aborted


class RecalculationEngine:
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

    def compute_account_balances(self, account_id: AccountId) -> dict[CurrencyCode, Decimal]:
        """Fold the account's history without writing anything."""
        account = self._require_account(account_id)
        return self._fold(account, self._transactions.list_for_account(account_id))

    def recalculate_account(self, account_id: AccountId) -> AccountBalances:
        with self._ledger.locks.hold(account_id):
            account = self._require_account(account_id)
            history = self._transactions.list_for_account(account_id)
            rebuilt = self._ledger.replace_account_balances(account_id, self._fold(account, history))
            self._accounts.save(account.model_copy(update={"last_activity": datetime.now(timezone.utc)}))

        logger.info(
            "Recalculated account %s from %d transactions: %s",
            account_id,
            len(history),
            ", ".join(f"{currency}={amount}" for currency, amount in rebuilt.balances.items()),
        )
        self._notifier.publish(ChangeEvent(EntityType.BALANCE, account_id, ChangeKind.RECALCULATED))
        return rebuilt

    def recalculate_all(
        self,
        account_ids: Iterable[AccountId] | None = None,
        *,
        should_continue: Callable[[], bool] | None = None,
    ) -> RecalculationReport:
        """Rebuild every account (or ``account_ids``, in that order), one account lock at a time.

        ``should_continue`` is checked before each account; when it returns False the run
        stops and the unprocessed accounts are returned as ``pending`` so a later call can resume.
        """
        known = {account.id for account in self._accounts.list()}
        order = list(account_ids) if account_ids is not None else sorted(known, key=str)
        report = RecalculationReport()
        report.errors.extend(self._orphaned_transactions(known))

        for index, account_id in enumerate(order):
            if should_continue is not None and not should_continue():
                report.aborted = True
                report.pending = order[index:]
                logger.warning("Recalculation stopped with %d accounts pending", len(report.pending))
                break
            try:
                self.recalculate_account(account_id)
            except LedgerError as err:
                logger.warning("Skipping account %s during recalculation: %s", account_id, err)
                report.errors.append(
                    ConsistencyError(f"account {account_id} could not be rebuilt: {err}", account_id=account_id)
                )
                continue
            report.recalculated.append(account_id)

        logger.info(
            "Recalculation finished: %d rebuilt, %d errors, %d pending",
            len(report.recalculated),
            len(report.errors),
            len(report.pending),
        )
        return report

    def detect_drift(self, account_id: AccountId) -> list[BalanceDrift]:
        with self._ledger.locks.hold(account_id):
            expected = self.compute_account_balances(account_id)
            actual = self._ledger.get_balances(account_id)

        drifts = [
            BalanceDrift(
                account_id=account_id,
                currency=currency,
                ledger_amount=actual.get(currency, Decimal(0)),
                expected_amount=expected.get(currency, Decimal(0)),
            )
            for currency in sorted(set(expected) | set(actual))
            if actual.get(currency, Decimal(0)) != expected.get(currency, Decimal(0))
        ]
        for drift in drifts:
            logger.warning(
                "Drift on account %s %s: ledger=%s expected=%s",
                account_id,
                drift.currency,
                drift.ledger_amount,
                drift.expected_amount,
            )
        return drifts

    def repair_drifted(self, *, should_continue: Callable[[], bool] | None = None) -> RecalculationReport:
        drifted = [account.id for account in self._accounts.list() if self.detect_drift(account.id)]
        return self.recalculate_all(drifted, should_continue=should_continue)

    def _require_account(self, account_id: AccountId) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(entity_type=EntityType.ACCOUNT, entity_id=account_id)
        return account

    def _orphaned_transactions(self, known: set[AccountId]) -> list[ConsistencyError]:
        errors: list[ConsistencyError] = []
        for transaction in self._transactions.list():
            if transaction.account_id in known:
                continue
            logger.warning(
                "Skipping transaction %s: account %s does not exist", transaction.id, transaction.account_id
            )
            errors.append(
                ConsistencyError(
                    f"transaction {transaction.id} references unknown account {transaction.account_id}",
                    account_id=transaction.account_id,
                    transaction_id=transaction.id,
                )
            )
        return errors

    @staticmethod
    def _fold(account: Account, history: Iterable[Transaction]) -> dict[CurrencyCode, Decimal]:
        # The primary currency is always present, even with no history touching it.
        balances: dict[CurrencyCode, Decimal] = {account.primary_currency: Decimal(0)}
        for transaction in history:
            currency = transaction.transaction_currency
            balances[currency] = balances.get(currency, Decimal(0)) + transaction.amount
        return dict(sorted(balances.items()))


__all__ = ["BalanceDrift", "RecalculationEngine", "RecalculationReport"]
