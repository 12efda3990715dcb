"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from splitledger.infrastructure.database.session import get_db
from splitledger.services.bills import BillService
from splitledger.services.ledger import LedgerService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_bill_service(db: Session = Depends(get_db)) -> BillService:
    """Provide bill bookkeeping service bound to the request session"""
    return BillService(db)


def get_ledger_service(request: Request, db: Session = Depends(get_db)) -> LedgerService:
    """Provide settlement/merge service bound to the request session"""
    return LedgerService(db, request_id=get_request_id(request))
