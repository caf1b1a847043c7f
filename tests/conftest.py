from typing import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import AppSettings
from db.models import Base
from db.records import InMemoryRecordStore, SqlRecordStore
from domain.account import Account
from services.ledger_app import LedgerApp, build_ledger_app
from tests.constants import BRL, EUR, SAVINGS, USD
from tests.helpers.builders import make_account
from tests.helpers.failing_store import FailingRecordStore

engine: Engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def settings(tmp_path) -> AppSettings:
    return AppSettings(db_file=tmp_path / "ledger.db", default_currency=USD, lock_timeout_seconds=5)


@pytest.fixture(scope="function")
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture(scope="function")
def sql_store() -> SqlRecordStore:
    return SqlRecordStore(session_factory)


@pytest.fixture(scope="function")
def app(record_store: InMemoryRecordStore, settings: AppSettings) -> LedgerApp:
    return build_ledger_app(record_store, settings=settings)


@pytest.fixture(scope="function")
def sql_app(sql_store: SqlRecordStore, settings: AppSettings) -> LedgerApp:
    return build_ledger_app(sql_store, settings=settings)


@pytest.fixture(scope="function")
def failing_store() -> FailingRecordStore:
    return FailingRecordStore()


@pytest.fixture(scope="function")
def failing_app(failing_store: FailingRecordStore, settings: AppSettings) -> LedgerApp:
    return build_ledger_app(failing_store, settings=settings)


@pytest.fixture(scope="function")
def checking(app: LedgerApp) -> Account:
    return make_account(app, "Checking", currency=USD)


@pytest.fixture(scope="function")
def savings(app: LedgerApp) -> Account:
    return make_account(app, "Savings", currency=USD, account_type=SAVINGS)


@pytest.fixture(scope="function")
def euro_account(app: LedgerApp) -> Account:
    return make_account(app, "Euro Wallet", currency=EUR)


@pytest.fixture(scope="function")
def real_account(app: LedgerApp) -> Account:
    return make_account(app, "Conta Corrente", currency=BRL)
