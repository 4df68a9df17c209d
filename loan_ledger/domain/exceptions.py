"""Domain-specific exceptions"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for the ledger core.

    Every error carries a stable machine-readable ``code`` and the HTTP status
    the boundary layer should answer with.
    """

    code = "LEDGER_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_response(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class NotFoundError(LedgerError):
    """Referenced entity does not exist"""

    code = "NOT_FOUND"
    http_status = 404


class AccountNotFoundError(NotFoundError):
    def __init__(self, account_id: str):
        super().__init__(f"Account '{account_id}' not found", {"account_id": account_id})


class LoanNotFoundError(NotFoundError):
    def __init__(self, loan_id: str):
        super().__init__(f"Loan '{loan_id}' not found", {"loan_id": loan_id})


class InvalidStateError(LedgerError):
    """Operation is not valid for the loan's current status"""

    code = "INVALID_STATE"
    http_status = 409


class InvalidAmountError(LedgerError):
    """Amount is non-positive, malformed, or exceeds what is owed"""

    code = "INVALID_AMOUNT"
    http_status = 422


class InsufficientFundsError(LedgerError):
    """Debit exceeds the account balance"""

    code = "INSUFFICIENT_FUNDS"
    http_status = 422

    def __init__(self, account_id: str, required: int, available: Optional[int] = None):
        details: Dict[str, Any] = {"account_id": account_id, "required": required}
        if available is not None:
            details["available"] = available
        super().__init__(f"Insufficient funds in account '{account_id}'", details)


class InvalidTransferError(LedgerError):
    """Transfer between an account and itself"""

    code = "INVALID_TRANSFER"
    http_status = 422


class AccountExistsError(LedgerError):
    """Account id is already taken"""

    code = "ACCOUNT_EXISTS"
    http_status = 409


class MissingParameterError(LedgerError):
    """A required operation parameter was not supplied"""

    code = "MISSING_PARAMETER"
    http_status = 400

    def __init__(self, parameter: str):
        super().__init__(f"Missing required parameter '{parameter}'", {"parameter": parameter})


class UnknownOperationError(LedgerError):
    code = "UNKNOWN_OPERATION"
    http_status = 400


class ResourceBusyError(LedgerError):
    """A lock on an account or loan could not be acquired in time"""

    code = "RESOURCE_BUSY"
    http_status = 503


class StoreUnavailableError(LedgerError):
    """Backing store is unreachable or failed mid-operation"""

    code = "STORE_UNAVAILABLE"
    http_status = 503


class TransferRollbackError(LedgerError):
    """A failed transfer could not be undone; balances need manual repair"""

    code = "TRANSFER_ROLLBACK_FAILED"
    http_status = 500
