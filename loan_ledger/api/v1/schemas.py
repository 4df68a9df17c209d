"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from loan_ledger.domain.models import Account, Loan, LoanStatus


class LoanRequest(BaseModel):
    """Request body for POST /v1/loans"""

    borrower_id: str = Field(..., min_length=1, description="Borrowing account identifier")
    amount_cents: int = Field(..., gt=0, description="Requested principal in cents")


class ApproveRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/approve"""

    lender_id: str = Field(..., min_length=1, description="Funding account identifier")


class RepayRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/repay"""

    amount_cents: int = Field(..., gt=0, description="Repayment in cents, at most the remaining balance")


class LoanSchema(BaseModel):
    loan_id: str
    borrower_id: str
    lender_id: Optional[str] = None
    principal_cents: int
    remaining_cents: int
    status: LoanStatus
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, loan: Loan) -> "LoanSchema":
        return cls(
            loan_id=loan.loan_id,
            borrower_id=loan.borrower_id,
            lender_id=loan.lender_id,
            principal_cents=loan.principal_cents,
            remaining_cents=loan.remaining_cents,
            status=loan.status,
            created_at=loan.created_at,
            updated_at=loan.updated_at,
        )


class LoanResponse(BaseModel):
    """Response for loan-mutating and loan-lookup endpoints"""

    message: str
    record: LoanSchema


class LoanListResponse(BaseModel):
    message: str
    record: List[LoanSchema]


class AccountSchema(BaseModel):
    account_id: str
    balance_cents: int

    @classmethod
    def from_domain(cls, account: Account) -> "AccountSchema":
        return cls(account_id=account.account_id, balance_cents=account.balance_cents)


class BalanceResponse(BaseModel):
    """Response for GET /v1/accounts/{account_id}/balance"""

    message: str
    record: AccountSchema
