"""Domain models - pure Python dataclasses representing ledger entities"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Currency(str, Enum):
    """Supported currencies, in declared (output) order"""

    CNY = "CNY"
    JPY = "JPY"


class BillStatus(str, Enum):
    """Bill lifecycle states"""

    UNPAID = "unpaid"  # recorded, not yet activated
    PENDING = "pending"  # awaiting payment, takes part in settlement/merge
    COMPLETED = "completed"
    MERGED = "merged"


SYSTEM_USER_ID = ""


@dataclass
class User:
    """Ledger participant"""

    id: str
    name: str


@dataclass
class BillShare:
    """One participant's obligation within a bill"""

    user_id: str
    amount: int  # minor units
    paid: bool = False


@dataclass
class Bill:
    """A single expense event split into shares"""

    title: str
    total_amount: int  # minor units
    currency: Currency
    created_by: str
    shares: List[BillShare] = field(default_factory=list)
    status: BillStatus = BillStatus.UNPAID
    description: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_system_generated(self) -> bool:
        return self.created_by == SYSTEM_USER_ID

    def outstanding_shares(self) -> List[BillShare]:
        """Unpaid shares owed to the creator by someone else"""
        return [
            share for share in self.shares
            if not share.paid and share.amount > 0 and share.user_id != self.created_by
        ]

    def is_fully_paid(self) -> bool:
        return not self.outstanding_shares()


@dataclass
class Settlement:
    """Suggested payment: from_user pays to_user amount"""

    from_user: str
    to_user: str
    amount: int
    currency: Currency
