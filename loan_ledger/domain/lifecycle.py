"""Loan state machine - explicit transitions between pending, approved and repaid"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from loan_ledger.domain.accounts import require_positive_amount
from loan_ledger.domain.exceptions import InvalidAmountError, InvalidStateError, InvalidTransferError
from loan_ledger.domain.models import Loan, LoanStatus, utcnow

# Every legal move; anything else is rejected
TRANSITIONS: Dict[LoanStatus, FrozenSet[LoanStatus]] = {
    LoanStatus.PENDING: frozenset({LoanStatus.APPROVED}),
    LoanStatus.APPROVED: frozenset({LoanStatus.APPROVED, LoanStatus.REPAID}),
    LoanStatus.REPAID: frozenset(),
}


def _require_status(loan: Loan, expected: LoanStatus, operation: str) -> None:
    if loan.status is not expected:
        raise InvalidStateError(
            f"Cannot {operation} a loan that is {loan.status.value}",
            {"loan_id": loan.loan_id, "status": loan.status.value, "expected": expected.value},
        )


def _advance(loan: Loan, now: Optional[datetime], **changes) -> Loan:
    target = changes.get("status", loan.status)
    if target not in TRANSITIONS[loan.status]:
        raise InvalidStateError(
            f"Illegal transition {loan.status.value} -> {target.value}",
            {"loan_id": loan.loan_id},
        )
    return replace(loan, updated_at=now or utcnow(), version=loan.version + 1, **changes)


def new_loan(loan_id: str, borrower_id: str, amount_cents: int, now: Optional[datetime] = None) -> Loan:
    """Create a pending loan with principal == remaining == amount"""
    require_positive_amount(amount_cents)
    created = now or utcnow()
    return Loan(
        loan_id=loan_id,
        borrower_id=borrower_id,
        principal_cents=amount_cents,
        remaining_cents=amount_cents,
        status=LoanStatus.PENDING,
        lender_id=None,
        created_at=created,
        updated_at=created,
    )


def approve(loan: Loan, lender_id: str, now: Optional[datetime] = None) -> Loan:
    """
    pending -> approved, binding the lender.

    Raises:
        InvalidStateError: loan is not pending
        InvalidTransferError: lender is the borrower
    """
    _require_status(loan, LoanStatus.PENDING, "approve")
    if lender_id == loan.borrower_id:
        raise InvalidTransferError(
            "A borrower cannot fund their own loan",
            {"loan_id": loan.loan_id, "account_id": lender_id},
        )
    return _advance(loan, now, status=LoanStatus.APPROVED, lender_id=lender_id)


def check_repayment(loan: Loan, amount_cents: int) -> None:
    """
    Validate a repayment against the loan without changing anything.

    Raises:
        InvalidStateError: loan is not approved
        InvalidAmountError: amount is not positive or exceeds what is still owed
    """
    _require_status(loan, LoanStatus.APPROVED, "repay")
    require_positive_amount(amount_cents)
    if amount_cents > loan.remaining_cents:
        raise InvalidAmountError(
            "Repayment exceeds the remaining balance",
            {
                "loan_id": loan.loan_id,
                "amount_cents": amount_cents,
                "remaining_cents": loan.remaining_cents,
            },
        )


def apply_repayment(loan: Loan, amount_cents: int, now: Optional[datetime] = None) -> Loan:
    """Reduce remaining by amount; a loan paid down to zero becomes repaid"""
    check_repayment(loan, amount_cents)
    remaining = loan.remaining_cents - amount_cents
    status = LoanStatus.REPAID if remaining == 0 else LoanStatus.APPROVED
    return _advance(loan, now, status=status, remaining_cents=remaining)
