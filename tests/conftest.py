import os

# keep the module-level engine off the real database file
os.environ.setdefault("FINLEDGER_DATABASE_URL", "sqlite:///:memory:")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from finledger import models  # noqa: F401  (registers the tables)
from finledger.config import Settings
from finledger.database import Base, get_db
from finledger.ledger import Ledger
from finledger.locks import AccountLocks


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def ledger(db):
    return Ledger(db, AccountLocks(), Settings())


@pytest.fixture
def open_account(ledger):
    """Factory for bank accounts funded through an opening-balance transaction."""

    def _open(name="Checking", balance=0, **kwargs):
        kwargs.setdefault("opened_on", date(2024, 1, 1))
        result = ledger.activity.open_account(name=name, opening_balance=balance, **kwargs)
        assert result.success, result.error
        return result.record

    return _open


@pytest.fixture
def open_card(ledger):
    """Factory for credit cards; ``debt`` becomes an opening charge."""

    def _open(card_name="Oro", credit_limit=10000, debt=0, **kwargs):
        kwargs.setdefault("opened_on", date(2024, 1, 1))
        result = ledger.activity.open_credit_card(
            bank="Banamex",
            card_name=card_name,
            credit_limit=credit_limit,
            current_balance=debt,
            **kwargs,
        )
        assert result.success, result.error
        return result.record

    return _open


@pytest.fixture
def client(session_factory):
    from finledger.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.account_locks = AccountLocks()
    # not used as a context manager, so the startup hook never touches a real database
    yield TestClient(app)
    app.dependency_overrides.clear()
