"""Data access layer for accounts and loans.

Each primitive runs in its own short transaction, so concurrent writers in
other processes cannot interleave with it. A move issues its debit and
credit inside one transaction and commits both or neither.
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from loan_ledger.domain.exceptions import StoreUnavailableError
from loan_ledger.domain.models import Account, Loan, LoanStatus
from loan_ledger.domain.repositories import AccountRepository, LoanRepository
from loan_ledger.infrastructure.database.models import AccountRecord, LoanRecord


class _MoveRefused(Exception):
    """Raised inside a move transaction to discard an applied debit"""


@contextmanager
def _transaction(session_factory: sessionmaker) -> Iterator[Session]:
    """Commit on success, roll back on error, surface connectivity failures"""
    try:
        with session_factory.begin() as db:
            yield db
    except (OperationalError, InterfaceError, PoolTimeoutError) as e:
        raise StoreUnavailableError(
            "Ledger database unavailable", {"error": str(getattr(e, "orig", None) or e)}
        ) from e


def _to_account(record: AccountRecord) -> Account:
    return Account(account_id=record.id, balance_cents=record.balance_cents)


def _to_loan(record: LoanRecord) -> Loan:
    return Loan(
        loan_id=record.id,
        borrower_id=record.borrower_id,
        lender_id=record.lender_id,
        principal_cents=record.principal_cents,
        remaining_cents=record.remaining_cents,
        status=LoanStatus(record.status),
        created_at=record.created_at,
        updated_at=record.updated_at,
        version=record.version,
    )


class SqlAccountRepository(AccountRepository):
    """Repository for account balances"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get(self, account_id: str) -> Optional[Account]:
        with _transaction(self.session_factory) as db:
            record = db.get(AccountRecord, account_id)
            return _to_account(record) if record else None

    def add(self, account: Account) -> bool:
        try:
            with _transaction(self.session_factory) as db:
                db.add(AccountRecord(id=account.account_id, balance_cents=account.balance_cents))
        except IntegrityError:
            return False
        return True

    def decrement(self, account_id: str, amount_cents: int) -> bool:
        with _transaction(self.session_factory) as db:
            return self._debit(db, account_id, amount_cents)

    def increment(self, account_id: str, amount_cents: int) -> bool:
        with _transaction(self.session_factory) as db:
            return self._credit(db, account_id, amount_cents)

    def move(self, from_id: str, to_id: str, amount_cents: int) -> bool:
        try:
            with _transaction(self.session_factory) as db:
                if not self._debit(db, from_id, amount_cents):
                    return False
                if not self._credit(db, to_id, amount_cents):
                    raise _MoveRefused(to_id)
        except _MoveRefused:
            return False
        return True

    def _debit(self, db: Session, account_id: str, amount_cents: int) -> bool:
        stmt = (
            update(AccountRecord)
            .where(AccountRecord.id == account_id, AccountRecord.balance_cents >= amount_cents)
            .values(balance_cents=AccountRecord.balance_cents - amount_cents)
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount == 1

    def _credit(self, db: Session, account_id: str, amount_cents: int) -> bool:
        stmt = (
            update(AccountRecord)
            .where(AccountRecord.id == account_id)
            .values(balance_cents=AccountRecord.balance_cents + amount_cents)
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount == 1


class SqlLoanRepository(LoanRepository):
    """Repository for loan records"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def add(self, loan: Loan) -> None:
        with _transaction(self.session_factory) as db:
            db.add(
                LoanRecord(
                    id=loan.loan_id,
                    borrower_id=loan.borrower_id,
                    lender_id=loan.lender_id,
                    principal_cents=loan.principal_cents,
                    remaining_cents=loan.remaining_cents,
                    status=loan.status.value,
                    version=loan.version,
                    created_at=loan.created_at,
                    updated_at=loan.updated_at,
                )
            )

    def get(self, loan_id: str) -> Optional[Loan]:
        with _transaction(self.session_factory) as db:
            record = db.get(LoanRecord, loan_id)
            return _to_loan(record) if record else None

    def find(
        self,
        borrower_id: Optional[str] = None,
        lender_id: Optional[str] = None,
        status: Optional[LoanStatus] = None,
        limit: int = 100,
    ) -> List[Loan]:
        """Fetch loans matching the filters, most recent first"""
        stmt = select(LoanRecord)
        if borrower_id is not None:
            stmt = stmt.where(LoanRecord.borrower_id == borrower_id)
        if lender_id is not None:
            stmt = stmt.where(LoanRecord.lender_id == lender_id)
        if status is not None:
            stmt = stmt.where(LoanRecord.status == status.value)
        stmt = stmt.order_by(LoanRecord.created_at.desc()).limit(limit)

        with _transaction(self.session_factory) as db:
            return [_to_loan(record) for record in db.scalars(stmt)]

    def compare_and_set(self, loan: Loan, expected_version: int) -> bool:
        stmt = (
            update(LoanRecord)
            .where(LoanRecord.id == loan.loan_id, LoanRecord.version == expected_version)
            .values(
                lender_id=loan.lender_id,
                remaining_cents=loan.remaining_cents,
                status=loan.status.value,
                version=loan.version,
                updated_at=loan.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        with _transaction(self.session_factory) as db:
            return db.execute(stmt).rowcount == 1
