"""Account store - the only component allowed to change a balance"""

import logging

from loan_ledger.domain.exceptions import (
    AccountExistsError,
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
    ResourceBusyError,
)
from loan_ledger.domain.models import Account
from loan_ledger.domain.repositories import AccountRepository

logger = logging.getLogger(__name__)


def require_positive_amount(amount_cents: int, field: str = "amount_cents") -> int:
    """Reject anything that is not a strictly positive whole number of cents"""
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise InvalidAmountError(
            f"{field} must be an integer number of cents", {field: repr(amount_cents)}
        )
    if amount_cents <= 0:
        raise InvalidAmountError(f"{field} must be positive", {field: amount_cents})
    return amount_cents


class AccountStore:
    """Balance reads and atomic debit/credit with the non-negative invariant"""

    def __init__(self, repository: AccountRepository):
        self.repository = repository

    def open_account(self, account_id: str, balance_cents: int = 0) -> Account:
        if isinstance(balance_cents, bool) or not isinstance(balance_cents, int) or balance_cents < 0:
            raise InvalidAmountError(
                "Opening balance must be a non-negative integer", {"balance_cents": balance_cents}
            )
        account = Account(account_id=account_id, balance_cents=balance_cents)
        if not self.repository.add(account):
            raise AccountExistsError(f"Account '{account_id}' already exists", {"account_id": account_id})
        logger.info("Account opened", extra={"account_id": account_id, "balance_cents": balance_cents})
        return account

    def get_account(self, account_id: str) -> Account:
        account = self.repository.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def get_balance(self, account_id: str) -> int:
        return self.get_account(account_id).balance_cents

    def debit(self, account_id: str, amount_cents: int) -> None:
        """
        Remove funds from an account.

        Raises:
            InvalidAmountError: amount is not a positive integer
            AccountNotFoundError: account does not exist
            InsufficientFundsError: balance is lower than the amount
        """
        require_positive_amount(amount_cents)
        if self.repository.decrement(account_id, amount_cents):
            return

        # The conditional update refused; work out why
        account = self.repository.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        raise InsufficientFundsError(account_id, amount_cents, account.balance_cents)

    def credit(self, account_id: str, amount_cents: int) -> None:
        require_positive_amount(amount_cents)
        if not self.repository.increment(account_id, amount_cents):
            raise AccountNotFoundError(account_id)

    def move(self, from_id: str, to_id: str, amount_cents: int) -> None:
        """
        Debit ``from_id`` and credit ``to_id`` in one repository write.

        Raises:
            InvalidAmountError: amount is not a positive integer
            AccountNotFoundError: either account does not exist
            InsufficientFundsError: source balance is lower than the amount
            ResourceBusyError: refused although both accounts now look valid
        """
        require_positive_amount(amount_cents)
        if self.repository.move(from_id, to_id, amount_cents):
            return

        # Nothing was written; report the leg that would have failed first
        source = self.repository.get(from_id)
        if source is None:
            raise AccountNotFoundError(from_id)
        if source.balance_cents < amount_cents:
            raise InsufficientFundsError(from_id, amount_cents, source.balance_cents)
        if self.repository.get(to_id) is None:
            raise AccountNotFoundError(to_id)
        raise ResourceBusyError(
            "Account balances changed during transfer",
            {"from_account": from_id, "to_account": to_id, "amount_cents": amount_cents},
        )
