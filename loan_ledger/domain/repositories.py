"""Abstract storage contracts consumed by the ledger core.

Implementations must make ``decrement``, ``increment`` and
``compare_and_set`` atomic with respect to concurrent callers, including
callers in other processes when the store is shared.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from loan_ledger.domain.models import Account, Loan, LoanStatus


class AccountRepository(ABC):
    """Account balances keyed by account id"""

    @abstractmethod
    def get(self, account_id: str) -> Optional[Account]:
        ...

    @abstractmethod
    def add(self, account: Account) -> bool:
        """Insert a new account. Returns False if the id is already taken."""

    @abstractmethod
    def decrement(self, account_id: str, amount_cents: int) -> bool:
        """Subtract ``amount_cents`` only if the account exists and holds at least that much.

        Returns True if the balance was changed.
        """

    @abstractmethod
    def increment(self, account_id: str, amount_cents: int) -> bool:
        """Add ``amount_cents``. Returns False if the account does not exist."""

    @abstractmethod
    def move(self, from_id: str, to_id: str, amount_cents: int) -> bool:
        """
        Debit ``from_id`` and credit ``to_id`` in one atomic write.

        Returns False, with neither balance changed, if either account is
        missing or ``from_id`` holds less than ``amount_cents``.
        """


class LoanRepository(ABC):
    """Loan records keyed by loan id"""

    @abstractmethod
    def add(self, loan: Loan) -> None:
        ...

    @abstractmethod
    def get(self, loan_id: str) -> Optional[Loan]:
        ...

    @abstractmethod
    def find(
        self,
        borrower_id: Optional[str] = None,
        lender_id: Optional[str] = None,
        status: Optional[LoanStatus] = None,
        limit: int = 100,
    ) -> List[Loan]:
        """Loans matching every given filter, newest first"""

    @abstractmethod
    def compare_and_set(self, loan: Loan, expected_version: int) -> bool:
        """Replace the stored loan only if its version is still ``expected_version``"""
