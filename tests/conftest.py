"""Pytest fixtures for testing"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from loan_ledger.api.dependencies import get_ledger_service
from loan_ledger.api.main import create_app
from loan_ledger.domain.accounts import AccountStore
from loan_ledger.domain.ledger import LoanLedger
from loan_ledger.domain.locks import KeyedLocks
from loan_ledger.domain.service import LedgerService
from loan_ledger.domain.transfers import TransferExecutor
from loan_ledger.infrastructure.database.models import Base
from loan_ledger.infrastructure.database.session import build_session_factory
from loan_ledger.infrastructure.memory.repositories import InMemoryAccountRepository, InMemoryLoanRepository


@pytest.fixture
def account_repo() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def loan_repo() -> InMemoryLoanRepository:
    return InMemoryLoanRepository()


@pytest.fixture
def accounts(account_repo: InMemoryAccountRepository) -> AccountStore:
    """Account store seeded with a lender holding 500 and an empty borrower"""
    store = AccountStore(account_repo)
    store.open_account("lender", 500)
    store.open_account("borrower", 0)
    return store


@pytest.fixture
def transfers(accounts: AccountStore) -> TransferExecutor:
    return TransferExecutor(accounts, KeyedLocks("account", timeout_seconds=2.0))


@pytest.fixture
def ledger(loan_repo: InMemoryLoanRepository, transfers: TransferExecutor) -> LoanLedger:
    return LoanLedger(loan_repo, transfers, KeyedLocks("loan", timeout_seconds=2.0))


@pytest.fixture
def service(ledger: LoanLedger, accounts: AccountStore) -> LedgerService:
    return LedgerService(ledger, accounts)


@pytest.fixture
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """SQLite-backed session factory in a throwaway file"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield build_session_factory(engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(service: LedgerService) -> TestClient:
    """FastAPI test client wired to the in-memory ledger service"""
    app = create_app()
    app.dependency_overrides[get_ledger_service] = lambda: service
    return TestClient(app)
