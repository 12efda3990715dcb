"""/v1/bills - bill bookkeeping endpoints"""

import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.exc import SQLAlchemyError

from splitledger.api.v1.schemas import (
    BatchDeleteRequest,
    BatchDeleteResponse,
    BatchStatusRequest,
    BillCreateRequest,
    BillResponse,
    BillUpdateRequest,
    StatusChangeRequest,
)
from splitledger.api.dependencies import get_bill_service, get_request_id
from splitledger.domain.exceptions import (
    BillNotFoundError,
    ConcurrentMergeConflict,
    InputInconsistencyError,
    InvalidAmountError,
    InvalidStatusTransition,
)
from splitledger.domain.models import BillShare, BillStatus, Currency
from splitledger.domain.money import to_minor_units
from splitledger.services.bills import BillService, BillView

router = APIRouter()


@router.get("/bills", response_model=List[BillResponse])
def list_bills(
    status: Optional[List[BillStatus]] = Query(None, description="Filter by status (repeatable)"),
    user_id: Optional[str] = Query(None, description="Only bills involving this user"),
    view: BillView = Query(BillView.ALL),
    currency: Optional[Currency] = Query(None, description="Only bills in this currency"),
    service: BillService = Depends(get_bill_service),
):
    """List bills, optionally per user: all, to_pay or to_receive"""
    bills = service.list_bills(statuses=status, user_id=user_id, view=view, currency=currency)
    return [BillResponse.from_domain(bill) for bill in bills]


@router.post("/bills", response_model=BillResponse, status_code=201)
def create_bill(
    request_body: BillCreateRequest,
    request: Request,
    service: BillService = Depends(get_bill_service),
):
    """
    Record a new expense.

    Amounts are display values; leaving every share amount at 0 splits the
    total evenly with the remainder on the creator.
    """
    request_id = get_request_id(request)
    currency = request_body.currency

    try:
        bill = service.create_bill(
            title=request_body.title,
            description=request_body.description,
            total_amount=to_minor_units(request_body.total_amount, currency),
            currency=currency,
            created_by=request_body.created_by,
            status=request_body.status,
            shares=[
                BillShare(user_id=s.user_id, amount=to_minor_units(s.amount, currency), paid=s.paid)
                for s in request_body.shares
            ],
        )
    except (InvalidAmountError, InputInconsistencyError) as e:
        logging.warning(f"Rejected bill: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=422, detail=str(e))
    except SQLAlchemyError as e:
        service.db.rollback()
        logging.error(f"Database error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return BillResponse.from_domain(bill)


@router.post("/bills/batch-status", response_model=List[BillResponse])
def batch_set_status(request_body: BatchStatusRequest, service: BillService = Depends(get_bill_service)):
    """Change the status of many bills; merged or ineligible bills are skipped"""
    try:
        bills = service.batch_set_status(
            request_body.bill_ids,
            request_body.status,
            filter_user_id=request_body.filter_user_id,
            view=request_body.view,
        )
    except ConcurrentMergeConflict as e:
        service.db.rollback()
        raise HTTPException(status_code=409, detail=str(e))

    return [BillResponse.from_domain(bill) for bill in bills]


@router.post("/bills/batch-delete", response_model=BatchDeleteResponse)
def batch_delete(request_body: BatchDeleteRequest, service: BillService = Depends(get_bill_service)):
    """Delete many bills at once; unknown ids are ignored"""
    return BatchDeleteResponse(deleted=service.batch_delete(request_body.bill_ids))


@router.get("/bills/{bill_id}", response_model=BillResponse)
def get_bill(bill_id: str, service: BillService = Depends(get_bill_service)):
    try:
        bill = service.get_bill(bill_id)
    except BillNotFoundError:
        raise HTTPException(status_code=404, detail="Bill not found")

    return BillResponse.from_domain(bill)


@router.put("/bills/{bill_id}", response_model=BillResponse)
def update_bill(
    bill_id: str,
    request_body: BillUpdateRequest,
    request: Request,
    service: BillService = Depends(get_bill_service),
):
    """Edit title, description, total or shares of an unpaid or pending bill"""
    request_id = get_request_id(request)

    try:
        currency = service.get_bill(bill_id).currency
        total_amount = None
        if request_body.total_amount is not None:
            total_amount = to_minor_units(request_body.total_amount, currency)
        shares = None
        if request_body.shares is not None:
            shares = [
                BillShare(user_id=s.user_id, amount=to_minor_units(s.amount, currency), paid=s.paid)
                for s in request_body.shares
            ]
        bill = service.update_bill(
            bill_id,
            title=request_body.title,
            description=request_body.description,
            total_amount=total_amount,
            shares=shares,
            expected_version=request_body.expected_version,
        )
    except BillNotFoundError:
        raise HTTPException(status_code=404, detail="Bill not found")
    except (InvalidAmountError, InputInconsistencyError) as e:
        service.db.rollback()
        logging.warning(f"Rejected bill edit: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))
    except (InvalidStatusTransition, ConcurrentMergeConflict) as e:
        service.db.rollback()
        raise HTTPException(status_code=409, detail=str(e))

    return BillResponse.from_domain(bill)


@router.post("/bills/{bill_id}/status", response_model=BillResponse)
def set_bill_status(
    bill_id: str,
    request_body: StatusChangeRequest,
    service: BillService = Depends(get_bill_service),
):
    """Activate a bill (-> pending) or mark it completed"""
    try:
        bill = service.set_status(bill_id, request_body.status)
    except BillNotFoundError:
        raise HTTPException(status_code=404, detail="Bill not found")
    except (InvalidStatusTransition, ConcurrentMergeConflict) as e:
        service.db.rollback()
        raise HTTPException(status_code=409, detail=str(e))

    return BillResponse.from_domain(bill)


@router.post("/bills/{bill_id}/shares/{user_id}/paid", response_model=BillResponse)
def mark_share_paid(bill_id: str, user_id: str, service: BillService = Depends(get_bill_service)):
    try:
        bill = service.mark_share_paid(bill_id, user_id)
    except BillNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (InvalidStatusTransition, ConcurrentMergeConflict) as e:
        service.db.rollback()
        raise HTTPException(status_code=409, detail=str(e))

    return BillResponse.from_domain(bill)


@router.delete("/bills/{bill_id}", status_code=204)
def delete_bill(bill_id: str, service: BillService = Depends(get_bill_service)):
    try:
        service.delete_bill(bill_id)
    except BillNotFoundError:
        raise HTTPException(status_code=404, detail="Bill not found")
