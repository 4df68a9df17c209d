"""Thread-safe in-memory repositories for tests and embedded use"""

import threading
from dataclasses import replace
from typing import Dict, List, Optional

from loan_ledger.domain.models import Account, Loan, LoanStatus
from loan_ledger.domain.repositories import AccountRepository, LoanRepository


class InMemoryAccountRepository(AccountRepository):
    """Balances in a dict; every primitive runs under one mutex"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._accounts: Dict[str, Account] = {}

    def get(self, account_id: str) -> Optional[Account]:
        with self._lock:
            return self._accounts.get(account_id)

    def add(self, account: Account) -> bool:
        with self._lock:
            if account.account_id in self._accounts:
                return False
            self._accounts[account.account_id] = account
            return True

    def decrement(self, account_id: str, amount_cents: int) -> bool:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None or account.balance_cents < amount_cents:
                return False
            self._accounts[account_id] = replace(account, balance_cents=account.balance_cents - amount_cents)
            return True

    def increment(self, account_id: str, amount_cents: int) -> bool:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return False
            self._accounts[account_id] = replace(account, balance_cents=account.balance_cents + amount_cents)
            return True

    def move(self, from_id: str, to_id: str, amount_cents: int) -> bool:
        with self._lock:
            source = self._accounts.get(from_id)
            target = self._accounts.get(to_id)
            if source is None or target is None or source.balance_cents < amount_cents:
                return False
            self._accounts[from_id] = replace(source, balance_cents=source.balance_cents - amount_cents)
            self._accounts[to_id] = replace(target, balance_cents=target.balance_cents + amount_cents)
            return True


class InMemoryLoanRepository(LoanRepository):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._loans: Dict[str, Loan] = {}

    def add(self, loan: Loan) -> None:
        with self._lock:
            self._loans[loan.loan_id] = loan

    def get(self, loan_id: str) -> Optional[Loan]:
        with self._lock:
            return self._loans.get(loan_id)

    def find(
        self,
        borrower_id: Optional[str] = None,
        lender_id: Optional[str] = None,
        status: Optional[LoanStatus] = None,
        limit: int = 100,
    ) -> List[Loan]:
        with self._lock:
            loans = list(self._loans.values())
        matches = [
            loan
            for loan in loans
            if (borrower_id is None or loan.borrower_id == borrower_id)
            and (lender_id is None or loan.lender_id == lender_id)
            and (status is None or loan.status is status)
        ]
        matches.sort(key=lambda loan: loan.created_at, reverse=True)
        return matches[:limit]

    def compare_and_set(self, loan: Loan, expected_version: int) -> bool:
        with self._lock:
            current = self._loans.get(loan.loan_id)
            if current is None or current.version != expected_version:
                return False
            self._loans[loan.loan_id] = loan
            return True
