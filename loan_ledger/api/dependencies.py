"""Dependency injection for FastAPI endpoints"""

from functools import lru_cache

from fastapi import Request

from loan_ledger.config import settings
from loan_ledger.domain.service import LedgerService, create_ledger_service
from loan_ledger.infrastructure.database.models import Base
from loan_ledger.infrastructure.database.repositories import SqlAccountRepository, SqlLoanRepository
from loan_ledger.infrastructure.database.session import build_engine, build_session_factory
from loan_ledger.infrastructure.memory.repositories import InMemoryAccountRepository, InMemoryLoanRepository


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


@lru_cache(maxsize=1)
def get_ledger_service() -> LedgerService:
    """Process-wide ledger service over the configured store.

    One instance per process so every request shares the same lock tables.
    """
    if settings.store_backend == "memory":
        return create_ledger_service(
            InMemoryAccountRepository(),
            InMemoryLoanRepository(),
            settings.lock_timeout_seconds,
        )

    engine = build_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    session_factory = build_session_factory(engine)
    return create_ledger_service(
        SqlAccountRepository(session_factory),
        SqlLoanRepository(session_factory),
        settings.lock_timeout_seconds,
    )
