"""Unit tests for the transfer executor"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from loan_ledger.domain.accounts import AccountStore
from loan_ledger.domain.exceptions import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTransferError,
    ResourceBusyError,
    StoreUnavailableError,
)
from loan_ledger.domain.locks import KeyedLocks
from loan_ledger.domain.transfers import TransferExecutor
from loan_ledger.infrastructure.memory.repositories import InMemoryAccountRepository


class RefusingMoveRepository(InMemoryAccountRepository):
    """Refuses every move, as if another process touched the balances first"""

    def move(self, from_id: str, to_id: str, amount_cents: int) -> bool:
        return False


class UnreachableMoveRepository(InMemoryAccountRepository):
    def move(self, from_id: str, to_id: str, amount_cents: int) -> bool:
        raise StoreUnavailableError("Ledger database unavailable")


def _executor(repo) -> TransferExecutor:
    store = AccountStore(repo)
    return TransferExecutor(store, KeyedLocks("account", timeout_seconds=2.0))


def test_transfer_conserves_total(accounts: AccountStore, transfers: TransferExecutor):
    transfers.transfer("lender", "borrower", 200)

    assert accounts.get_balance("lender") == 300
    assert accounts.get_balance("borrower") == 200
    assert accounts.get_balance("lender") + accounts.get_balance("borrower") == 500


def test_transfer_insufficient_funds_changes_nothing(accounts: AccountStore, transfers: TransferExecutor):
    with pytest.raises(InsufficientFundsError):
        transfers.transfer("borrower", "lender", 1)

    assert accounts.get_balance("lender") == 500
    assert accounts.get_balance("borrower") == 0


def test_self_transfer_rejected(accounts: AccountStore, transfers: TransferExecutor):
    with pytest.raises(InvalidTransferError):
        transfers.transfer("lender", "lender", 10)

    assert accounts.get_balance("lender") == 500


def test_invalid_amount_checked_before_self_transfer(transfers: TransferExecutor):
    with pytest.raises(InvalidAmountError):
        transfers.transfer("lender", "lender", 0)


def test_missing_source_account(accounts: AccountStore, transfers: TransferExecutor):
    with pytest.raises(AccountNotFoundError):
        transfers.transfer("ghost", "borrower", 10)

    assert accounts.get_balance("borrower") == 0


def test_missing_destination_leaves_source_untouched(accounts: AccountStore, transfers: TransferExecutor):
    with pytest.raises(AccountNotFoundError):
        transfers.transfer("lender", "ghost", 100)

    assert accounts.get_balance("lender") == 500


def test_refused_move_with_valid_accounts_reports_busy():
    executor = _executor(RefusingMoveRepository())
    executor.accounts.open_account("src", 100)
    executor.accounts.open_account("dst", 0)

    with pytest.raises(ResourceBusyError):
        executor.transfer("src", "dst", 60)

    assert executor.accounts.get_balance("src") == 100
    assert executor.accounts.get_balance("dst") == 0


def test_store_failure_leaves_balances_untouched():
    executor = _executor(UnreachableMoveRepository())
    executor.accounts.open_account("src", 100)
    executor.accounts.open_account("dst", 0)

    with pytest.raises(StoreUnavailableError):
        executor.transfer("src", "dst", 60)

    assert executor.accounts.get_balance("src") == 100
    assert executor.accounts.get_balance("dst") == 0


def test_concurrent_transfers_never_overdraw():
    """Many threads draining one account: no lost updates, no negative balance"""
    repo = InMemoryAccountRepository()
    executor = _executor(repo)
    executor.accounts.open_account("src", 1000)
    for i in range(10):
        executor.accounts.open_account(f"dst{i}", 0)

    def attempt(i):
        try:
            executor.transfer("src", f"dst{i % 10}", 30)
            return True
        except InsufficientFundsError:
            return False

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(50)))

    succeeded = sum(outcomes)
    assert succeeded == 33  # 33 * 30 = 990, the 34th would overdraw
    assert executor.accounts.get_balance("src") == 10
    total = sum(executor.accounts.get_balance(f"dst{i}") for i in range(10))
    assert total == 990


def test_opposing_transfers_do_not_deadlock():
    repo = InMemoryAccountRepository()
    executor = _executor(repo)
    executor.accounts.open_account("a", 10_000)
    executor.accounts.open_account("b", 10_000)

    def shuffle(i):
        if i % 2:
            executor.transfer("a", "b", 7)
        else:
            executor.transfer("b", "a", 7)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(shuffle, range(200)))

    assert executor.accounts.get_balance("a") + executor.accounts.get_balance("b") == 20_000
    assert executor.accounts.get_balance("a") == 10_000
