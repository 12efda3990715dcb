"""POST /v1/merge - consolidate PENDING bills into one bill per creditor"""

import logging
from fastapi import APIRouter, Depends, HTTPException

from splitledger.api.v1.schemas import BillResponse, MergeResponse
from splitledger.api.dependencies import get_ledger_service
from splitledger.domain.exceptions import (
    BalanceInvariantViolation,
    ConcurrentMergeConflict,
    InputInconsistencyError,
)
from splitledger.services.ledger import LedgerService

router = APIRouter()


@router.post("/merge", response_model=MergeResponse)
def merge_bills(service: LedgerService = Depends(get_ledger_service)):
    """
    Merge every currency group with at least two PENDING bills.

    Flow:
    1. Lock and read PENDING bills
    2. Net balances and allocate debtors to creditors
    3. Create merged bills and retire originals in one transaction
    4. Return the new bills per currency
    """
    try:
        merged = service.merge_bills()
    except InputInconsistencyError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "bill_ids": e.bill_ids})
    except ConcurrentMergeConflict as e:
        raise HTTPException(status_code=409, detail=f"{e} (retryable)")
    except BalanceInvariantViolation:
        raise HTTPException(status_code=500, detail="Internal server error")
    except Exception as e:
        logging.error(f"Unexpected merge error: {e}", extra={"request_id": service.request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return MergeResponse(
        merged={currency: [BillResponse.from_domain(b) for b in bills] for currency, bills in merged.items()},
        merged_bill_count=sum(len(bills) for bills in merged.values()),
    )
