"""Loan ledger - owns loan records and drives transfers on approval and repayment"""

import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from loan_ledger.domain import lifecycle
from loan_ledger.domain.exceptions import InvalidStateError, LoanNotFoundError, TransferRollbackError
from loan_ledger.domain.locks import KeyedLocks
from loan_ledger.domain.models import Loan, LoanStatus, utcnow
from loan_ledger.domain.repositories import LoanRepository
from loan_ledger.domain.transfers import TransferExecutor

logger = logging.getLogger(__name__)


def _new_loan_id() -> str:
    return str(uuid.uuid4())


class LoanLedger:
    """
    Loan records and their state machine.

    Balance-affecting steps always go through the transfer executor, and the
    new loan state is persisted only after its transfer succeeded. Operations
    on one loan run under that loan's lock; the involved accounts stay locked
    until the loan state is stored, so a transfer can still be reversed cleanly
    if storing it fails.
    """

    def __init__(
        self,
        loans: LoanRepository,
        transfers: TransferExecutor,
        locks: KeyedLocks,
        id_factory: Callable[[], str] = _new_loan_id,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.loans = loans
        self.transfers = transfers
        self.locks = locks
        self.id_factory = id_factory
        self.clock = clock

    def request_loan(self, borrower_id: str, amount_cents: int) -> Loan:
        loan = lifecycle.new_loan(self.id_factory(), borrower_id, amount_cents, self.clock())
        self.loans.add(loan)
        logger.info(
            "Loan requested",
            extra={"loan_id": loan.loan_id, "borrower_id": borrower_id, "amount_cents": amount_cents},
        )
        return loan

    def get_loan(self, loan_id: str) -> Loan:
        loan = self.loans.get(loan_id)
        if loan is None:
            raise LoanNotFoundError(loan_id)
        return loan

    def list_loans(
        self,
        borrower_id: Optional[str] = None,
        lender_id: Optional[str] = None,
        status: Optional[LoanStatus] = None,
        limit: int = 100,
    ) -> List[Loan]:
        return self.loans.find(borrower_id=borrower_id, lender_id=lender_id, status=status, limit=limit)

    def approve_loan(self, loan_id: str, lender_id: str) -> Loan:
        """
        Bind a lender and move the principal from lender to borrower.

        Raises:
            LoanNotFoundError, InvalidStateError, InvalidTransferError,
            plus any transfer error (the loan then stays pending)
        """
        with self.locks.hold(loan_id):
            loan = self.get_loan(loan_id)
            approved = lifecycle.approve(loan, lender_id, self.clock())
            self._settle(loan, approved, lender_id, loan.borrower_id, loan.principal_cents)

        logger.info(
            "Loan approved",
            extra={"loan_id": loan_id, "lender_id": lender_id, "amount_cents": loan.principal_cents},
        )
        return approved

    def repay_loan(self, loan_id: str, amount_cents: int) -> Loan:
        """
        Move ``amount_cents`` from borrower back to lender and reduce what is owed.

        Raises:
            LoanNotFoundError, InvalidStateError, InvalidAmountError,
            plus any transfer error (remaining is then unchanged)
        """
        with self.locks.hold(loan_id):
            loan = self.get_loan(loan_id)
            repaid = lifecycle.apply_repayment(loan, amount_cents, self.clock())
            self._settle(loan, repaid, loan.borrower_id, loan.lender_id, amount_cents)

        logger.info(
            "Loan repayment applied",
            extra={
                "loan_id": loan_id,
                "amount_cents": amount_cents,
                "remaining_cents": repaid.remaining_cents,
                "status": repaid.status.value,
            },
        )
        return repaid

    def _settle(self, before: Loan, after: Loan, from_id: str, to_id: str, amount_cents: int) -> None:
        """Transfer first, then store the new loan state; undo the transfer if storing fails"""
        with self.transfers.locks.hold(from_id, to_id):
            self.transfers.transfer(from_id, to_id, amount_cents)
            try:
                stored = self.loans.compare_and_set(after, expected_version=before.version)
            except Exception:
                self._reverse(before, from_id, to_id, amount_cents)
                raise

            if not stored:
                self._reverse(before, from_id, to_id, amount_cents)
                raise InvalidStateError(
                    "Loan was modified concurrently",
                    {"loan_id": before.loan_id, "expected_version": before.version},
                )

    def _reverse(self, loan: Loan, from_id: str, to_id: str, amount_cents: int) -> None:
        logger.warning(
            "Loan update not stored, reversing transfer",
            extra={"loan_id": loan.loan_id, "from_account": from_id, "to_account": to_id, "amount_cents": amount_cents},
        )
        try:
            self.transfers.transfer(to_id, from_id, amount_cents)
        except Exception as exc:
            logger.critical(
                f"Transfer reversal failed: {exc}",
                extra={"loan_id": loan.loan_id, "amount_cents": amount_cents},
            )
            raise TransferRollbackError(
                "Loan update failed and its transfer could not be reversed",
                {"loan_id": loan.loan_id, "from_account": from_id, "to_account": to_id, "amount_cents": amount_cents},
            ) from exc
