"""
Transfers between two accounts, built from two transaction-store writes.

Lifecycle of one transfer: REQUESTED -> LEG_A_COMMITTED -> COMPLETE, or
LEG_A_COMMITTED -> ROLLED_BACK when the credit leg fails and the debit leg is
deleted again. Both accounts stay locked for the whole two-leg commit, so no
caller can observe the intermediate state.
"""
from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Iterable
from uuid import uuid4

from db.repositories import AccountRepository, TransactionRepository
from domain.balance_ledger import BalanceLedger
from domain.base_types import TRANSFER_CATEGORY, AccountId, EntityType, TransferId
from domain.errors import ConsistencyError, NotFoundError, TransferIntegrityError, parse_model
from domain.transaction import Transaction, TransactionData
from domain.transfer import Transfer, TransferRequest, TransferState

from .notifications import ChangeNotifier
from .transaction_store import TransactionStore

logger = logging.getLogger(__name__)


class TransferCoordinator:
    def __init__(
        self,
        *,
        store: TransactionStore,
        transactions: TransactionRepository,
        accounts: AccountRepository,
        ledger: BalanceLedger,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self._store = store
        self._transactions = transactions
        self._accounts = accounts
        self._ledger = ledger
        self._notifier = notifier or ChangeNotifier()

    def create_transfer(
        self,
        from_account_id: AccountId,
        to_account_id: AccountId,
        amount: Decimal,
        currency: str,
        date: dt.date,
        description: str = "",
        tags: Iterable[str] = (),
    ) -> Transfer:
        request = parse_model(
            TransferRequest,
            {
                "from_account_id": from_account_id,
                "to_account_id": to_account_id,
                "amount": amount,
                "currency": currency,
                "date": date,
                "description": description,
                "tags": set(tags),
            },
        )
        transfer_id = TransferId(uuid4())
        state = TransferState.REQUESTED
        with self._notifier.deferred(), self._ledger.locks.hold(request.from_account_id, request.to_account_id):
            for account_id in (request.from_account_id, request.to_account_id):
                if not self._accounts.exists(account_id):
                    raise NotFoundError(entity_type=EntityType.ACCOUNT, entity_id=account_id)

            debit = self._store.add_transaction(
                self._leg(request, transfer_id, account_id=request.from_account_id, amount=-request.amount),
                as_transfer_leg=True,
            )
            state = TransferState.LEG_A_COMMITTED
            logger.debug("Transfer %s: %s", transfer_id, state)
            try:
                credit = self._store.add_transaction(
                    self._leg(request, transfer_id, account_id=request.to_account_id, amount=request.amount),
                    as_transfer_leg=True,
                )
            except Exception as err:
                rolled_back = self._roll_back(debit)
                state = TransferState.ROLLED_BACK if rolled_back else state
                logger.warning("Transfer %s ended %s after credit leg failed: %s", transfer_id, state, err)
                raise TransferIntegrityError(
                    f"transfer {transfer_id} failed while recording the credit leg: {err}",
                    transfer_id=transfer_id,
                    rolled_back=rolled_back,
                ) from err

        transfer = Transfer(id=transfer_id, debit=debit, credit=credit, state=TransferState.COMPLETE)
        logger.info(
            "Transfer %s complete: %s %s from %s to %s",
            transfer_id,
            request.amount,
            request.currency,
            request.from_account_id,
            request.to_account_id,
        )
        return transfer

    def delete_transfer(self, transfer_id: TransferId) -> int:
        """Delete whichever legs exist; returns how many were removed. Repeating the call is a no-op.

        If one leg cannot be deleted, the legs already removed are restored and
        ``TransferIntegrityError`` is raised, so the transfer is never left half-deleted.
        """
        legs = self._transactions.list_for_transfer(transfer_id)
        if not legs:
            logger.debug("Transfer %s has no legs left to delete", transfer_id)
            return 0

        deleted: list[Transaction] = []
        with self._notifier.deferred(), self._ledger.locks.hold(*(leg.account_id for leg in legs)):
            for leg in self._transactions.list_for_transfer(transfer_id):
                try:
                    self._store.delete_transaction(leg.id, leg.account_id, as_transfer_leg=True)
                except Exception as err:
                    restored = self._restore(deleted)
                    logger.warning(
                        "Deleting transfer %s failed after %d legs (restored=%s): %s",
                        transfer_id,
                        len(deleted),
                        restored,
                        err,
                    )
                    raise TransferIntegrityError(
                        f"transfer {transfer_id} failed while deleting leg {leg.id}: {err}",
                        transfer_id=transfer_id,
                        rolled_back=restored,
                    ) from err
                deleted.append(leg)

        logger.info("Deleted transfer %s (%d legs)", transfer_id, len(deleted))
        return len(deleted)

    def get_transfer(self, transfer_id: TransferId) -> Transfer:
        legs = self._transactions.list_for_transfer(transfer_id)
        if not legs:
            raise NotFoundError(entity_type="transfer", entity_id=transfer_id)
        return self._pair(transfer_id, legs)

    def list_transfers(self) -> list[Transfer]:
        """Complete transfers, newest first; malformed groups are logged and left out."""
        grouped: dict[TransferId, list[Transaction]] = defaultdict(list)
        for transaction in self._transactions.list():
            if transaction.linked_transfer_id is not None:
                grouped[transaction.linked_transfer_id].append(transaction)

        transfers: list[Transfer] = []
        for transfer_id, legs in grouped.items():
            try:
                transfers.append(self._pair(transfer_id, legs))
            except ConsistencyError as err:
                logger.warning("Ignoring malformed transfer %s: %s", transfer_id, err)
        return sorted(transfers, key=lambda transfer: (transfer.debit.date, str(transfer.id)), reverse=True)

    def _roll_back(self, debit: Transaction) -> bool:
        try:
            self._store.delete_transaction(debit.id, debit.account_id, as_transfer_leg=True)
        except Exception:
            logger.exception(
                "Compensating delete of debit leg %s failed; transfer %s left a singleton leg",
                debit.id,
                debit.linked_transfer_id,
            )
            return False
        return True

    def _restore(self, legs: list[Transaction]) -> bool:
        for leg in legs:
            try:
                self._store.restore_transaction(leg, as_transfer_leg=True)
            except Exception:
                logger.exception(
                    "Restoring leg %s failed; transfer %s left a singleton leg", leg.id, leg.linked_transfer_id
                )
                return False
        return True

    @staticmethod
    def _leg(
        request: TransferRequest,
        transfer_id: TransferId,
        *,
        account_id: AccountId,
        amount: Decimal,
    ) -> TransactionData:
        return TransactionData(
            account_id=account_id,
            amount=amount,
            transaction_currency=request.currency,
            date=request.date,
            description=request.description,
            category=TRANSFER_CATEGORY,
            tags=set(request.tags),
            linked_transfer_id=transfer_id,
        )

    @staticmethod
    def _pair(transfer_id: TransferId, legs: list[Transaction]) -> Transfer:
        debits = [leg for leg in legs if leg.amount < 0]
        credits = [leg for leg in legs if leg.amount > 0]
        if len(debits) != 1 or len(credits) != 1:
            raise ConsistencyError(
                f"transfer {transfer_id} has {len(debits)} debit and {len(credits)} credit legs",
                account_id=legs[0].account_id,
                transaction_id=legs[0].id,
            )
        try:
            return Transfer(id=transfer_id, debit=debits[0], credit=credits[0])
        except ValueError as err:
            raise ConsistencyError(
                f"transfer {transfer_id} legs do not match: {err}",
                account_id=debits[0].account_id,
                transaction_id=debits[0].id,
            ) from err


__all__ = ["TransferCoordinator"]
