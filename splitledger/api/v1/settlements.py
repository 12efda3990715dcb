"""GET /v1/settlements - who pays whom to clear every outstanding balance"""

from fastapi import APIRouter, Depends, HTTPException

from splitledger.api.v1.schemas import SettlementResponse, SettlementsResponse
from splitledger.api.dependencies import get_ledger_service
from splitledger.domain.exceptions import BalanceInvariantViolation, InputInconsistencyError
from splitledger.services.ledger import LedgerService

router = APIRouter()


@router.get("/settlements", response_model=SettlementsResponse)
def get_settlements(service: LedgerService = Depends(get_ledger_service)):
    """
    Compute settlement suggestions per currency.

    Read-only: nothing is persisted. Bills whose shares do not add up to
    their total make the whole report fail with 422 naming those bills.
    """
    try:
        settlements = service.compute_settlements()
    except InputInconsistencyError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "bill_ids": e.bill_ids})
    except BalanceInvariantViolation:
        raise HTTPException(status_code=500, detail="Internal server error")

    return SettlementsResponse(settlements=[SettlementResponse.from_domain(s) for s in settlements])
