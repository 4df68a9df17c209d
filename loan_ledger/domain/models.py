"""Domain models - pure Python dataclasses representing ledger entities"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoanStatus(str, Enum):
    """Closed set of loan states: pending -> approved -> repaid"""

    PENDING = "pending"
    APPROVED = "approved"
    REPAID = "repaid"


@dataclass(frozen=True)
class Account:
    """Holder of a non-negative balance in minor currency units (cents)"""

    account_id: str
    balance_cents: int


@dataclass(frozen=True)
class Loan:
    """Ledger entry tracking a borrowed amount's lifecycle.

    Records are immutable; state changes go through the transition functions
    in ``loan_ledger.domain.lifecycle`` which return a new record with
    ``version`` bumped by one.
    """

    loan_id: str
    borrower_id: str
    principal_cents: int
    remaining_cents: int
    status: LoanStatus = LoanStatus.PENDING
    lender_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 1

    @property
    def repaid_cents(self) -> int:
        return self.principal_cents - self.remaining_cents


@dataclass(frozen=True)
class LedgerResult:
    """Uniform response shape returned by the ledger service"""

    message: str
    record: Union[Loan, Account, list, None]
