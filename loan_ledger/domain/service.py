"""Ledger service - entry point translating external calls into ledger operations"""

import time
from typing import Any, Callable, Dict, Mapping, Optional

from loan_ledger.domain.accounts import AccountStore
from loan_ledger.domain.exceptions import LedgerError, MissingParameterError, UnknownOperationError
from loan_ledger.domain.ledger import LoanLedger
from loan_ledger.domain.locks import KeyedLocks
from loan_ledger.domain.models import LedgerResult, Loan, LoanStatus
from loan_ledger.domain.repositories import AccountRepository, LoanRepository
from loan_ledger.domain.transfers import TransferExecutor
from loan_ledger.infrastructure.observability.logging import log_operation
from loan_ledger.infrastructure.observability.metrics import record_operation, record_transfer

# External operation names accepted by dispatch()
OPERATION_ALIASES = {
    "requestLoan": "request_loan",
    "request_loan": "request_loan",
    "approveLoan": "approve_loan",
    "approve_loan": "approve_loan",
    "repayLoan": "repay_loan",
    "repay_loan": "repay_loan",
}

PARAMETER_ALIASES = {
    "borrowerId": "borrower_id",
    "lenderId": "lender_id",
    "loanId": "loan_id",
    "amount": "amount_cents",
    "amountCents": "amount_cents",
}


def _require(**params: Any) -> None:
    for name, value in params.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise MissingParameterError(name)


class LedgerService:
    """
    Thin orchestration over the loan ledger.

    Every operation returns a LedgerResult(message, record) or raises a
    LedgerError subclass. Outcomes are recorded in metrics and logs; no
    business rules live here.
    """

    def __init__(self, ledger: LoanLedger, accounts: AccountStore):
        self.ledger = ledger
        self.accounts = accounts

    def request_loan(self, borrower_id: str, amount_cents: int, request_id: Optional[str] = None) -> LedgerResult:
        _require(borrower_id=borrower_id, amount_cents=amount_cents)
        return self._run(
            "request_loan",
            lambda: self.ledger.request_loan(borrower_id, amount_cents),
            "Loan requested",
            request_id=request_id,
        )

    def approve_loan(self, loan_id: str, lender_id: str, request_id: Optional[str] = None) -> LedgerResult:
        _require(loan_id=loan_id, lender_id=lender_id)
        result = self._run(
            "approve_loan",
            lambda: self.ledger.approve_loan(loan_id, lender_id),
            "Loan approved",
            loan_id=loan_id,
            request_id=request_id,
        )
        record_transfer("approve_loan", result.record.principal_cents)
        return result

    def repay_loan(self, loan_id: str, amount_cents: int, request_id: Optional[str] = None) -> LedgerResult:
        _require(loan_id=loan_id, amount_cents=amount_cents)
        result = self._run(
            "repay_loan",
            lambda: self.ledger.repay_loan(loan_id, amount_cents),
            "Repayment applied",
            loan_id=loan_id,
            request_id=request_id,
        )
        record_transfer("repay_loan", amount_cents)
        if result.record.status is LoanStatus.REPAID:
            return LedgerResult(message="Loan fully repaid", record=result.record)
        return result

    def get_loan(self, loan_id: str) -> LedgerResult:
        _require(loan_id=loan_id)
        return LedgerResult(message="Loan found", record=self.ledger.get_loan(loan_id))

    def list_loans(
        self,
        borrower_id: Optional[str] = None,
        lender_id: Optional[str] = None,
        status: Optional[LoanStatus] = None,
        limit: int = 100,
    ) -> LedgerResult:
        loans = self.ledger.list_loans(borrower_id=borrower_id, lender_id=lender_id, status=status, limit=limit)
        return LedgerResult(message=f"{len(loans)} loans found", record=loans)

    def get_balance(self, account_id: str) -> LedgerResult:
        _require(account_id=account_id)
        return LedgerResult(message="Account found", record=self.accounts.get_account(account_id))

    def dispatch(self, operation: str, params: Mapping[str, Any]) -> LedgerResult:
        """Run a mutating operation by its external name, e.g. ``approveLoan``"""
        method_name = OPERATION_ALIASES.get(operation)
        if method_name is None:
            raise UnknownOperationError(f"Unknown operation '{operation}'", {"operation": operation})

        kwargs = {PARAMETER_ALIASES.get(key, key): value for key, value in params.items()}
        handlers: Dict[str, Callable[..., LedgerResult]] = {
            "request_loan": lambda: self.request_loan(kwargs.get("borrower_id"), kwargs.get("amount_cents")),
            "approve_loan": lambda: self.approve_loan(kwargs.get("loan_id"), kwargs.get("lender_id")),
            "repay_loan": lambda: self.repay_loan(kwargs.get("loan_id"), kwargs.get("amount_cents")),
        }
        return handlers[method_name]()

    def _run(
        self,
        operation: str,
        call: Callable[[], Loan],
        message: str,
        loan_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> LedgerResult:
        start_time = time.time()
        try:
            record = call()
        except LedgerError as exc:
            duration = time.time() - start_time
            record_operation(operation, exc.code, duration)
            log_operation(operation, exc.code, duration * 1000, loan_id=loan_id, request_id=request_id)
            raise
        except Exception:
            duration = time.time() - start_time
            record_operation(operation, "INTERNAL_ERROR", duration)
            log_operation(operation, "INTERNAL_ERROR", duration * 1000, loan_id=loan_id, request_id=request_id)
            raise

        duration = time.time() - start_time
        record_operation(operation, "ok", duration)
        log_operation(operation, "ok", duration * 1000, loan_id=record.loan_id, request_id=request_id)
        return LedgerResult(message=message, record=record)


def create_ledger_service(
    account_repository: AccountRepository,
    loan_repository: LoanRepository,
    lock_timeout_seconds: float = 5.0,
) -> LedgerService:
    """Wire account store, transfer executor and loan ledger over the given repositories"""
    accounts = AccountStore(account_repository)
    transfers = TransferExecutor(accounts, KeyedLocks("account", lock_timeout_seconds))
    ledger = LoanLedger(loan_repository, transfers, KeyedLocks("loan", lock_timeout_seconds))
    return LedgerService(ledger, accounts)
