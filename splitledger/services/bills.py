"""Bill bookkeeping around the settlement core: registration, creation, payment marks"""

import logging
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from splitledger.domain.balances import validate_bills
from splitledger.domain.exceptions import (
    BillNotFoundError,
    ConcurrentMergeConflict,
    InvalidAmountError,
    InvalidStatusTransition,
)
from splitledger.domain.lifecycle import can_transition, ensure_transition
from splitledger.domain.models import Bill, BillShare, BillStatus, Currency, User
from splitledger.domain.money import ensure_in_range, split_evenly
from splitledger.infrastructure.database.repositories import BillRepository, UserRepository

logger = logging.getLogger(__name__)

INITIAL_STATUSES = frozenset({BillStatus.UNPAID, BillStatus.PENDING})
EDITABLE_STATUSES = INITIAL_STATUSES


class BillView(str, Enum):
    """Per-user bill listing filters"""

    ALL = "all"
    TO_PAY = "to_pay"
    TO_RECEIVE = "to_receive"


def matches_view(bill: Bill, user_id: str, view: BillView) -> bool:
    """Whether a bill belongs in a user's listing"""
    if view == BillView.TO_PAY:
        return any(s.user_id == user_id and not s.paid for s in bill.shares) and bill.created_by != user_id
    if view == BillView.TO_RECEIVE:
        return bill.created_by == user_id and any(not s.paid for s in bill.shares)
    return bill.created_by == user_id or any(s.user_id == user_id for s in bill.shares)


def _normalize_shares(total_amount: int, shares: Sequence[BillShare], created_by: str) -> List[BillShare]:
    """Even-split all-zero shares and mark the creator's own share paid"""
    if total_amount <= 0:
        raise InvalidAmountError("Bill total must be positive")
    ensure_in_range(total_amount)

    if shares and all(share.amount == 0 for share in shares):
        paid_by_user = {share.user_id: share.paid for share in shares}
        shares = [
            BillShare(user_id=s.user_id, amount=s.amount, paid=paid_by_user.get(s.user_id, False))
            for s in split_evenly(total_amount, [share.user_id for share in shares], created_by)
        ]

    return [
        BillShare(user_id=s.user_id, amount=s.amount, paid=s.paid or s.user_id == created_by)
        for s in shares
    ]


class BillService:
    """CRUD operations on users and bills; each call is its own transaction"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)
        self.bills = BillRepository(db)

    def register_user(self, name: str) -> User:
        user = self.users.create_user(name.strip())
        self.db.commit()
        logger.info("User registered", extra={"user_id": user.id})
        return user

    def list_users(self) -> List[User]:
        return self.users.list_users()

    def create_bill(
        self,
        title: str,
        total_amount: int,
        currency: Currency,
        created_by: str,
        shares: Sequence[BillShare],
        description: Optional[str] = None,
        status: BillStatus = BillStatus.UNPAID,
    ) -> Bill:
        """
        Record a new expense.

        When every share amount is zero the total is split evenly and the
        creator absorbs the division remainder. The creator's own share is
        always marked paid. Shares must sum exactly to the total.
        """
        if status not in INITIAL_STATUSES:
            raise InvalidStatusTransition(f"A new bill cannot start as {status.value}")

        bill = Bill(
            title=title,
            description=description,
            total_amount=total_amount,
            currency=currency,
            created_by=created_by,
            status=status,
            shares=_normalize_shares(total_amount, shares, created_by),
        )
        validate_bills([bill])

        created = self.bills.create_bill(bill)
        self.db.commit()
        logger.info("Bill created", extra={"bill_id": created.id, "currency": currency.value})
        return created

    def update_bill(
        self,
        bill_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        total_amount: Optional[int] = None,
        shares: Optional[Sequence[BillShare]] = None,
        expected_version: Optional[int] = None,
    ) -> Bill:
        """
        Edit an UNPAID or PENDING bill; None leaves a field unchanged.

        Shares follow the same rules as on creation. The write is a
        compare-and-set on expected_version, or on the version just read.
        """
        bill = self.get_bill(bill_id)
        if bill.status not in EDITABLE_STATUSES:
            raise InvalidStatusTransition(f"Bill {bill_id} is {bill.status.value} and can no longer change")
        if expected_version is not None and bill.version != expected_version:
            raise ConcurrentMergeConflict(f"Bill {bill_id} is at version {bill.version}, expected {expected_version}")

        total = bill.total_amount if total_amount is None else total_amount
        edited = Bill(
            id=bill.id,
            title=bill.title if title is None else title,
            description=bill.description if description is None else description,
            total_amount=total,
            currency=bill.currency,
            created_by=bill.created_by,
            status=bill.status,
            shares=_normalize_shares(total, bill.shares if shares is None else shares, bill.created_by),
        )
        validate_bills([edited])

        self.bills.update_bill_details(bill_id, edited, expected_version=bill.version)
        self.db.commit()
        logger.info("Bill updated", extra={"bill_id": bill_id})
        return self.get_bill(bill_id)

    def get_bill(self, bill_id: str) -> Bill:
        bill = self.bills.get_bill(bill_id)
        if bill is None:
            raise BillNotFoundError(f"Bill {bill_id} not found")
        return bill

    def list_bills(
        self,
        statuses: Optional[Iterable[BillStatus]] = None,
        user_id: Optional[str] = None,
        view: BillView = BillView.ALL,
        currency: Optional[Currency] = None,
    ) -> List[Bill]:
        bills = self.bills.list_bills(statuses=statuses, currency=currency)
        if user_id is None:
            return bills
        return [bill for bill in bills if matches_view(bill, user_id, view)]

    def set_status(self, bill_id: str, status: BillStatus) -> Bill:
        """Move a bill along its lifecycle (e.g. activate to PENDING, mark COMPLETED)"""
        bill = self.get_bill(bill_id)
        ensure_transition(bill.status, status)
        self.bills.update_bill_status(bill_id, status, expected_version=bill.version)
        self.db.commit()
        return self.get_bill(bill_id)

    def batch_set_status(
        self,
        bill_ids: Iterable[str],
        status: BillStatus,
        filter_user_id: Optional[str] = None,
        view: Optional[BillView] = None,
    ) -> List[Bill]:
        """
        Apply one status change to many bills in a single transaction.

        Missing bills, MERGED bills, bills outside the user filter and bills
        that cannot make the transition are skipped.
        """
        updated_ids = []
        for bill_id in bill_ids:
            bill = self.bills.get_bill(bill_id)
            if bill is None:
                continue
            if bill.status == BillStatus.MERGED:
                logger.info("Skipping merged bill", extra={"bill_id": bill_id})
                continue
            if filter_user_id and view and not matches_view(bill, filter_user_id, view):
                continue
            if not can_transition(bill.status, status):
                logger.info(
                    "Skipping bill that cannot change status",
                    extra={"bill_id": bill_id, "from_status": bill.status.value, "to_status": status.value},
                )
                continue
            self.bills.update_bill_status(bill_id, status, expected_version=bill.version)
            updated_ids.append(bill_id)

        self.db.commit()
        return [self.get_bill(bill_id) for bill_id in updated_ids]

    def mark_share_paid(self, bill_id: str, user_id: str) -> Bill:
        """Mark one participant's share as paid; frozen bills cannot change"""
        bill = self.get_bill(bill_id)
        if bill.status in (BillStatus.MERGED, BillStatus.COMPLETED):
            raise InvalidStatusTransition(f"Bill {bill_id} is {bill.status.value} and can no longer change")
        if not any(share.user_id == user_id for share in bill.shares):
            raise BillNotFoundError(f"Bill {bill_id} has no share for user {user_id}")

        shares = [
            BillShare(user_id=s.user_id, amount=s.amount, paid=s.paid or s.user_id == user_id)
            for s in bill.shares
        ]
        self.bills.update_bill_shares(bill_id, shares, expected_version=bill.version)
        self.db.commit()
        return self.get_bill(bill_id)

    def delete_bill(self, bill_id: str) -> None:
        if not self.bills.delete_bill(bill_id):
            raise BillNotFoundError(f"Bill {bill_id} not found")
        self.db.commit()

    def batch_delete(self, bill_ids: Iterable[str]) -> List[str]:
        """Delete many bills in one transaction; returns the ids actually deleted"""
        deleted = [bill_id for bill_id in dict.fromkeys(bill_ids) if self.bills.delete_bill(bill_id)]
        self.db.commit()
        logger.info("Bills deleted", extra={"deleted_count": len(deleted), "bill_ids": deleted})
        return deleted
