"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from splitledger.domain.models import Bill, BillStatus, Currency, Settlement, User
from splitledger.domain.money import format_minor_units
from splitledger.services.bills import BillView


class UserCreateRequest(BaseModel):
    """Request body for POST /v1/users"""

    name: str = Field(..., min_length=1, description="Display name")


class UserResponse(BaseModel):
    id: str
    name: str

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(id=user.id, name=user.name)


class ShareRequest(BaseModel):
    """One participant in a new bill; omit amount everywhere to split evenly"""

    user_id: str = Field(..., min_length=1)
    amount: Decimal = Field(Decimal(0), ge=0, description="Display amount, e.g. 12.34")
    paid: bool = False


class BillCreateRequest(BaseModel):
    """Request body for POST /v1/bills"""

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    total_amount: Decimal = Field(..., gt=0, description="Display amount, e.g. 301.00")
    currency: Currency = Currency.CNY
    created_by: str = Field(..., min_length=1)
    status: BillStatus = BillStatus.UNPAID
    shares: List[ShareRequest] = Field(..., min_length=1)


class BillUpdateRequest(BaseModel):
    """Request body for PUT /v1/bills/{bill_id}; omitted fields stay as they are"""

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    total_amount: Optional[Decimal] = Field(None, gt=0)
    shares: Optional[List[ShareRequest]] = Field(None, min_length=1)
    expected_version: Optional[int] = Field(None, description="Reject the edit if the bill has moved past this version")


class StatusChangeRequest(BaseModel):
    """Request body for POST /v1/bills/{bill_id}/status"""

    status: BillStatus


class BatchStatusRequest(BaseModel):
    """Request body for POST /v1/bills/batch-status"""

    bill_ids: List[str] = Field(..., min_length=1)
    status: BillStatus
    filter_user_id: Optional[str] = None
    view: Optional[BillView] = None


class BatchDeleteRequest(BaseModel):
    """Request body for POST /v1/bills/batch-delete"""

    bill_ids: List[str] = Field(..., min_length=1)


class BatchDeleteResponse(BaseModel):
    deleted: List[str]


class ShareResponse(BaseModel):
    user_id: str
    amount_minor: int
    amount: str
    paid: bool


class BillResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    total_amount_minor: int
    total_amount: str
    currency: Currency
    created_by: str
    created_at: Optional[datetime] = None
    status: BillStatus
    version: int
    shares: List[ShareResponse]

    @classmethod
    def from_domain(cls, bill: Bill) -> "BillResponse":
        return cls(
            id=bill.id,
            title=bill.title,
            description=bill.description,
            total_amount_minor=bill.total_amount,
            total_amount=format_minor_units(bill.total_amount, bill.currency),
            currency=bill.currency,
            created_by=bill.created_by,
            created_at=bill.created_at,
            status=bill.status,
            version=bill.version,
            shares=[
                ShareResponse(
                    user_id=s.user_id,
                    amount_minor=s.amount,
                    amount=format_minor_units(s.amount, bill.currency),
                    paid=s.paid,
                )
                for s in bill.shares
            ],
        )


class SettlementResponse(BaseModel):
    from_user: str
    to_user: str
    amount_minor: int
    amount: str
    currency: Currency

    @classmethod
    def from_domain(cls, settlement: Settlement) -> "SettlementResponse":
        return cls(
            from_user=settlement.from_user,
            to_user=settlement.to_user,
            amount_minor=settlement.amount,
            amount=format_minor_units(settlement.amount, settlement.currency),
            currency=settlement.currency,
        )


class SettlementsResponse(BaseModel):
    """Response for GET /v1/settlements"""

    settlements: List[SettlementResponse]


class MergeResponse(BaseModel):
    """Response for POST /v1/merge"""

    merged: Dict[Currency, List[BillResponse]]
    merged_bill_count: int
