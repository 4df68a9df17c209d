"""Unit tests for the loan ledger: transfers, atomicity and concurrency"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from prometheus_client import REGISTRY

from loan_ledger.domain.accounts import AccountStore
from loan_ledger.domain.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStateError,
    LedgerError,
    LoanNotFoundError,
    StoreUnavailableError,
    TransferRollbackError,
)
from loan_ledger.domain.ledger import LoanLedger
from loan_ledger.domain.locks import KeyedLocks
from loan_ledger.domain.models import LoanStatus
from loan_ledger.domain.service import create_ledger_service
from loan_ledger.domain.transfers import TransferExecutor
from loan_ledger.infrastructure.memory.repositories import InMemoryAccountRepository, InMemoryLoanRepository


class StaleWriteLoanRepository(InMemoryLoanRepository):
    """Simulates another process winning the race on every conditional update"""

    def compare_and_set(self, loan, expected_version):
        return False


class BrokenWriteLoanRepository(InMemoryLoanRepository):
    def compare_and_set(self, loan, expected_version):
        raise StoreUnavailableError("Ledger database unavailable")


class NoRefundAccountRepository(InMemoryAccountRepository):
    """Store drops out before any move leaving the given account"""

    def __init__(self, unreachable_from: str):
        super().__init__()
        self.unreachable_from = unreachable_from

    def move(self, from_id: str, to_id: str, amount_cents: int) -> bool:
        if from_id == self.unreachable_from:
            raise StoreUnavailableError("Ledger database unavailable")
        return super().move(from_id, to_id, amount_cents)


def _ledger_with(repo, transfers: TransferExecutor) -> LoanLedger:
    return LoanLedger(repo, transfers, KeyedLocks("loan", timeout_seconds=2.0))


def test_request_loan_has_no_balance_effect(ledger: LoanLedger, accounts: AccountStore):
    loan = ledger.request_loan("borrower", 100)

    assert loan.status is LoanStatus.PENDING
    assert loan.remaining_cents == 100
    assert ledger.get_loan(loan.loan_id) == loan
    assert accounts.get_balance("borrower") == 0
    assert accounts.get_balance("lender") == 500


def test_full_lifecycle_scenario(ledger: LoanLedger, accounts: AccountStore):
    loan = ledger.request_loan("borrower", 100)

    approved = ledger.approve_loan(loan.loan_id, "lender")
    assert approved.status is LoanStatus.APPROVED
    assert approved.lender_id == "lender"
    assert accounts.get_balance("lender") == 400
    assert accounts.get_balance("borrower") == 100

    partial = ledger.repay_loan(loan.loan_id, 40)
    assert partial.status is LoanStatus.APPROVED
    assert partial.remaining_cents == 60
    assert accounts.get_balance("lender") == 440
    assert accounts.get_balance("borrower") == 60

    final = ledger.repay_loan(loan.loan_id, 60)
    assert final.status is LoanStatus.REPAID
    assert final.remaining_cents == 0
    assert accounts.get_balance("lender") == 500
    assert accounts.get_balance("borrower") == 0
    assert ledger.get_loan(loan.loan_id) == final


def test_approve_with_insufficient_lender_funds_stays_pending(ledger: LoanLedger, accounts: AccountStore):
    accounts.open_account("poor-lender", 50)
    loan = ledger.request_loan("borrower", 100)

    with pytest.raises(InsufficientFundsError):
        ledger.approve_loan(loan.loan_id, "poor-lender")

    stored = ledger.get_loan(loan.loan_id)
    assert stored.status is LoanStatus.PENDING
    assert stored.lender_id is None
    assert accounts.get_balance("poor-lender") == 50
    assert accounts.get_balance("borrower") == 0

    # Retry with a funded lender succeeds
    assert ledger.approve_loan(loan.loan_id, "lender").status is LoanStatus.APPROVED


def test_approve_non_pending_moves_no_funds(ledger: LoanLedger, accounts: AccountStore):
    loan = ledger.request_loan("borrower", 100)
    ledger.approve_loan(loan.loan_id, "lender")
    accounts.open_account("second-lender", 1000)

    with pytest.raises(InvalidStateError):
        ledger.approve_loan(loan.loan_id, "second-lender")

    assert accounts.get_balance("second-lender") == 1000
    assert accounts.get_balance("borrower") == 100
    assert ledger.get_loan(loan.loan_id).lender_id == "lender"


def test_unknown_loan(ledger: LoanLedger):
    with pytest.raises(LoanNotFoundError):
        ledger.approve_loan("missing", "lender")
    with pytest.raises(LoanNotFoundError):
        ledger.repay_loan("missing", 10)


def test_over_repayment_leaves_remaining(ledger: LoanLedger, accounts: AccountStore):
    loan = ledger.request_loan("borrower", 100)
    ledger.approve_loan(loan.loan_id, "lender")

    with pytest.raises(InvalidAmountError):
        ledger.repay_loan(loan.loan_id, 101)

    assert ledger.get_loan(loan.loan_id).remaining_cents == 100
    assert accounts.get_balance("borrower") == 100


def test_repayment_without_funds_records_nothing(ledger: LoanLedger, accounts: AccountStore, transfers: TransferExecutor):
    loan = ledger.request_loan("borrower", 100)
    ledger.approve_loan(loan.loan_id, "lender")
    accounts.open_account("elsewhere", 0)
    transfers.transfer("borrower", "elsewhere", 80)

    with pytest.raises(InsufficientFundsError):
        ledger.repay_loan(loan.loan_id, 50)

    stored = ledger.get_loan(loan.loan_id)
    assert stored.remaining_cents == 100
    assert accounts.get_balance("lender") == 400


def test_lost_race_reverses_transfer(transfers: TransferExecutor, accounts: AccountStore):
    repo = StaleWriteLoanRepository()
    ledger = _ledger_with(repo, transfers)
    loan = ledger.request_loan("borrower", 100)

    with pytest.raises(InvalidStateError):
        ledger.approve_loan(loan.loan_id, "lender")

    assert accounts.get_balance("lender") == 500
    assert accounts.get_balance("borrower") == 0
    assert repo.get(loan.loan_id).status is LoanStatus.PENDING


def test_store_failure_reverses_transfer(transfers: TransferExecutor, accounts: AccountStore):
    ledger = _ledger_with(BrokenWriteLoanRepository(), transfers)
    loan = ledger.request_loan("borrower", 100)

    with pytest.raises(StoreUnavailableError):
        ledger.approve_loan(loan.loan_id, "lender")

    assert accounts.get_balance("lender") == 500
    assert accounts.get_balance("borrower") == 0


def test_failed_reversal_is_reported_and_counted():
    account_repo = NoRefundAccountRepository(unreachable_from="borrower")
    service = create_ledger_service(account_repo, BrokenWriteLoanRepository())
    service.accounts.open_account("lender", 500)
    service.accounts.open_account("borrower", 0)
    loan = service.request_loan("borrower", 100).record
    before = REGISTRY.get_sample_value("ledger_rollback_failures_total") or 0.0

    with pytest.raises(TransferRollbackError) as exc_info:
        service.approve_loan(loan.loan_id, "lender")

    assert isinstance(exc_info.value.__cause__, StoreUnavailableError)
    assert REGISTRY.get_sample_value("ledger_rollback_failures_total") == before + 1
    # Funds stay moved and the loan unchanged; the error carries what to repair
    assert account_repo.get("borrower").balance_cents == 100
    assert service.get_loan(loan.loan_id).record.status is LoanStatus.PENDING
    assert exc_info.value.details["loan_id"] == loan.loan_id


def test_list_loans_filters(ledger: LoanLedger, accounts: AccountStore):
    accounts.open_account("other-borrower", 0)
    first = ledger.request_loan("borrower", 100)
    ledger.request_loan("borrower", 50)
    ledger.request_loan("other-borrower", 10)
    ledger.approve_loan(first.loan_id, "lender")

    assert len(ledger.list_loans(borrower_id="borrower")) == 2
    assert [loan.loan_id for loan in ledger.list_loans(lender_id="lender")] == [first.loan_id]
    assert len(ledger.list_loans(status=LoanStatus.PENDING)) == 2
    assert len(ledger.list_loans(limit=1)) == 1


def test_concurrent_approvals_only_one_wins(ledger: LoanLedger, accounts: AccountStore):
    lenders = [f"lender-{i}" for i in range(8)]
    for lender in lenders:
        accounts.open_account(lender, 100)
    loan = ledger.request_loan("borrower", 100)
    barrier = threading.Barrier(len(lenders))

    def approve(lender):
        barrier.wait()
        try:
            ledger.approve_loan(loan.loan_id, lender)
            return "ok"
        except LedgerError as exc:
            return type(exc)

    with ThreadPoolExecutor(max_workers=len(lenders)) as pool:
        outcomes = list(pool.map(approve, lenders))

    assert outcomes.count("ok") == 1
    assert all(o is InvalidStateError for o in outcomes if o != "ok")
    assert accounts.get_balance("borrower") == 100
    assert sum(accounts.get_balance(lender) for lender in lenders) == 700


def test_concurrent_repayments_never_exceed_remaining(ledger: LoanLedger, accounts: AccountStore):
    loan = ledger.request_loan("borrower", 100)
    ledger.approve_loan(loan.loan_id, "lender")
    barrier = threading.Barrier(6)

    def repay(_):
        barrier.wait()
        try:
            ledger.repay_loan(loan.loan_id, 30)
            return True
        except InvalidAmountError:
            return False
        except InvalidStateError:
            return False

    with ThreadPoolExecutor(max_workers=6) as pool:
        outcomes = list(pool.map(repay, range(6)))

    # 3 * 30 = 90 fits in 100, a 4th would not
    assert sum(outcomes) == 3
    stored = ledger.get_loan(loan.loan_id)
    assert stored.remaining_cents == 10
    assert stored.status is LoanStatus.APPROVED
    assert accounts.get_balance("lender") == 490
    assert accounts.get_balance("borrower") == 10
