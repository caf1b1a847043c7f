from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from config import AppSettings, config
from db.db import init_db
from db.records import RecordStore, SqlRecordStore
from db.repositories import AccountRepository, BalanceRepository, TransactionRepository
from domain.account_locks import AccountLocks
from domain.balance_ledger import BalanceLedger
from domain.base_types import AccountId
from domain.pricing import PriceProvider

from .accounts import AccountService
from .conversion import CurrencyConverter
from .notifications import ChangeNotifier
from .price_service import build_default_service
from .recalculation import RecalculationEngine
from .transaction_store import TransactionStore
from .transfers import TransferCoordinator

logger = logging.getLogger(__name__)


@dataclass
class LedgerApp:
    """Every core component wired over one record store, sharing one lock registry and notifier."""

    accounts: AccountService
    transactions: TransactionStore
    transfers: TransferCoordinator
    recalculation: RecalculationEngine
    ledger: BalanceLedger
    notifier: ChangeNotifier
    converter: CurrencyConverter

    def get_balance(self, account_id: AccountId, currency: str) -> Decimal:
        return self.ledger.get_balance(account_id, currency)


def build_ledger_app(
    record_store: RecordStore,
    *,
    settings: AppSettings | None = None,
    price_provider: PriceProvider | None = None,
) -> LedgerApp:
    settings = settings or config()
    account_repository = AccountRepository(record_store)
    transaction_repository = TransactionRepository(record_store)
    ledger = BalanceLedger(
        BalanceRepository(record_store),
        locks=AccountLocks(timeout=settings.lock_timeout_seconds),
    )
    notifier = ChangeNotifier()

    store = TransactionStore(
        transactions=transaction_repository,
        accounts=account_repository,
        ledger=ledger,
        notifier=notifier,
    )
    transfers = TransferCoordinator(
        store=store,
        transactions=transaction_repository,
        accounts=account_repository,
        ledger=ledger,
        notifier=notifier,
    )
    accounts = AccountService(
        accounts=account_repository,
        transactions=transaction_repository,
        ledger=ledger,
        store=store,
        transfers=transfers,
        notifier=notifier,
        default_currency=settings.default_currency,
    )
    recalculation = RecalculationEngine(
        transactions=transaction_repository,
        accounts=account_repository,
        ledger=ledger,
        notifier=notifier,
    )
    return LedgerApp(
        accounts=accounts,
        transactions=store,
        transfers=transfers,
        recalculation=recalculation,
        ledger=ledger,
        notifier=notifier,
        converter=CurrencyConverter(price_provider or build_default_service()),
    )


def open_sqlite_app(settings: AppSettings | None = None, *, reset: bool = False) -> LedgerApp:
    settings = settings or config()
    logger.info("Opening ledger database at %s", settings.db_file)
    session_factory = init_db(settings.sql_echo, db_file=settings.db_file, reset=reset)
    return build_ledger_app(SqlRecordStore(session_factory), settings=settings)


__all__ = ["LedgerApp", "build_ledger_app", "open_sqlite_app"]
