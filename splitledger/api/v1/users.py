"""GET/POST /v1/users - ledger participants"""

import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from splitledger.api.v1.schemas import UserCreateRequest, UserResponse
from splitledger.api.dependencies import get_bill_service
from splitledger.services.bills import BillService

router = APIRouter()


@router.get("/users", response_model=List[UserResponse])
def list_users(service: BillService = Depends(get_bill_service)):
    """List every registered user"""
    return [UserResponse.from_domain(user) for user in service.list_users()]


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(request_body: UserCreateRequest, service: BillService = Depends(get_bill_service)):
    """Register a new user"""
    if not request_body.name.strip():
        raise HTTPException(status_code=422, detail="Name must not be blank")

    try:
        user = service.register_user(request_body.name)
    except SQLAlchemyError as e:
        service.db.rollback()
        logging.error(f"Database error: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    return UserResponse.from_domain(user)
