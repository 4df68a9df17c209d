"""Loan lifecycle endpoints: request, approve, repay and lookups"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from loan_ledger.api.dependencies import get_ledger_service, get_request_id
from loan_ledger.api.v1.schemas import (
    ApproveRequest,
    LoanListResponse,
    LoanRequest,
    LoanResponse,
    LoanSchema,
    RepayRequest,
)
from loan_ledger.domain.models import LedgerResult, LoanStatus
from loan_ledger.domain.service import LedgerService

router = APIRouter()


def _loan_response(result: LedgerResult) -> LoanResponse:
    return LoanResponse(message=result.message, record=LoanSchema.from_domain(result.record))


@router.post("/loans", response_model=LoanResponse, status_code=status.HTTP_201_CREATED)
def request_loan(
    body: LoanRequest,
    request: Request,
    service: LedgerService = Depends(get_ledger_service),
):
    """Open a pending loan for the borrower. No funds move yet."""
    result = service.request_loan(body.borrower_id, body.amount_cents, request_id=get_request_id(request))
    return _loan_response(result)


@router.post("/loans/{loan_id}/approve", response_model=LoanResponse)
def approve_loan(
    loan_id: str,
    body: ApproveRequest,
    request: Request,
    service: LedgerService = Depends(get_ledger_service),
):
    """
    Fund a pending loan.

    Moves the principal from lender to borrower; on any failure the loan stays
    pending and balances are unchanged.
    """
    result = service.approve_loan(loan_id, body.lender_id, request_id=get_request_id(request))
    return _loan_response(result)


@router.post("/loans/{loan_id}/repay", response_model=LoanResponse)
def repay_loan(
    loan_id: str,
    body: RepayRequest,
    request: Request,
    service: LedgerService = Depends(get_ledger_service),
):
    """Pay back part or all of an approved loan"""
    result = service.repay_loan(loan_id, body.amount_cents, request_id=get_request_id(request))
    return _loan_response(result)


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(loan_id: str, service: LedgerService = Depends(get_ledger_service)):
    return _loan_response(service.get_loan(loan_id))


@router.get("/loans", response_model=LoanListResponse)
def list_loans(
    borrower_id: Optional[str] = Query(None, description="Filter by borrower"),
    lender_id: Optional[str] = Query(None, description="Filter by lender"),
    loan_status: Optional[LoanStatus] = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(100, ge=1, le=500),
    service: LedgerService = Depends(get_ledger_service),
):
    result = service.list_loans(borrower_id=borrower_id, lender_id=lender_id, status=loan_status, limit=limit)
    return LoanListResponse(
        message=result.message,
        record=[LoanSchema.from_domain(loan) for loan in result.record],
    )
