"""Two-party balance moves applied all-or-nothing"""

import logging

from loan_ledger.domain.accounts import AccountStore, require_positive_amount
from loan_ledger.domain.exceptions import InvalidTransferError
from loan_ledger.domain.locks import KeyedLocks

logger = logging.getLogger(__name__)


class TransferExecutor:
    """Moves funds between two accounts through the account store.

    Both accounts stay locked for the whole move, so transfers sharing an
    account run one at a time. The store writes the debit and the credit
    together, so a failure part way leaves both balances as they were.
    Transfers over disjoint account pairs do not contend.
    """

    def __init__(self, accounts: AccountStore, locks: KeyedLocks):
        self.accounts = accounts
        self.locks = locks

    def transfer(self, from_id: str, to_id: str, amount_cents: int) -> None:
        """
        Debit ``from_id`` and credit ``to_id`` as one unit.

        On any error neither balance changes.

        Raises:
            InvalidAmountError: amount is not a positive integer
            InvalidTransferError: source and destination are the same account
            AccountNotFoundError / InsufficientFundsError: the move was refused
            ResourceBusyError: account locks not acquired in time
        """
        require_positive_amount(amount_cents)
        if from_id == to_id:
            raise InvalidTransferError(
                "Cannot transfer from an account to itself", {"account_id": from_id}
            )

        with self.locks.hold(from_id, to_id):
            self.accounts.move(from_id, to_id, amount_cents)

        logger.debug(
            "Transfer applied",
            extra={"from_account": from_id, "to_account": to_id, "amount_cents": amount_cents},
        )
