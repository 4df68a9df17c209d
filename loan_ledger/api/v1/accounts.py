"""GET /v1/accounts/{account_id}/balance - Read an account balance"""

from fastapi import APIRouter, Depends

from loan_ledger.api.dependencies import get_ledger_service
from loan_ledger.api.v1.schemas import AccountSchema, BalanceResponse
from loan_ledger.domain.service import LedgerService

router = APIRouter()


@router.get("/accounts/{account_id}/balance", response_model=BalanceResponse)
def get_balance(account_id: str, service: LedgerService = Depends(get_ledger_service)):
    result = service.get_balance(account_id)
    return BalanceResponse(message=result.message, record=AccountSchema.from_domain(result.record))
