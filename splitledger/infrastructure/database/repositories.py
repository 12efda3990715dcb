"""Data access layer for users and bills.

Repositories only flush; the caller owns commit/rollback so several writes can
be grouped into one transaction.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from splitledger.infrastructure.database.models import UserRecord, BillRecord, BillShareRecord
from splitledger.domain.models import User, Bill, BillShare, BillStatus, Currency
from splitledger.domain.exceptions import BillNotFoundError, ConcurrentMergeConflict


def _to_user(record: UserRecord) -> User:
    return User(id=record.id, name=record.name)


def _to_bill(record: BillRecord) -> Bill:
    return Bill(
        id=record.id,
        title=record.title,
        description=record.description,
        total_amount=record.total_amount,
        currency=Currency(record.currency),
        created_by=record.created_by,
        created_at=record.created_at,
        status=BillStatus(record.status),
        version=record.version,
        shares=[BillShare(user_id=s.user_id, amount=s.amount, paid=s.paid) for s in record.shares],
    )


def _share_records(shares: Iterable[BillShare]) -> List[BillShareRecord]:
    return [
        BillShareRecord(position=position, user_id=share.user_id, amount=share.amount, paid=share.paid)
        for position, share in enumerate(shares)
    ]


class UserRepository:
    """Repository for ledger users"""

    def __init__(self, db: Session):
        self.db = db

    def list_users(self) -> List[User]:
        """All registered users, oldest first"""
        records = self.db.query(UserRecord).order_by(UserRecord.created_at, UserRecord.id).all()
        return [_to_user(r) for r in records]

    def get_user(self, user_id: str) -> Optional[User]:
        record = self.db.get(UserRecord, user_id)
        return _to_user(record) if record else None

    def create_user(self, name: str) -> User:
        record = UserRecord(name=name)
        self.db.add(record)
        self.db.flush()
        return _to_user(record)


class BillRepository:
    """Repository for bills and their shares"""

    def __init__(self, db: Session):
        self.db = db

    def list_bills(
        self,
        statuses: Optional[Iterable[BillStatus]] = None,
        currency: Optional[Currency] = None,
        for_update: bool = False,
    ) -> List[Bill]:
        """
        Fetch bills, optionally filtered by status and currency.

        for_update=True takes row locks (SELECT ... FOR UPDATE) where the
        backend supports them and always reloads rows from the database.
        """
        query = self.db.query(BillRecord)
        if statuses is not None:
            query = query.filter(BillRecord.status.in_([BillStatus(s).value for s in statuses]))
        if currency is not None:
            query = query.filter(BillRecord.currency == Currency(currency).value)
        if for_update:
            query = query.with_for_update().populate_existing()

        records = query.order_by(BillRecord.created_at, BillRecord.id).all()
        return [_to_bill(r) for r in records]

    def get_bill(self, bill_id: str) -> Optional[Bill]:
        record = self.db.get(BillRecord, bill_id)
        return _to_bill(record) if record else None

    def create_bill(self, bill: Bill) -> Bill:
        """Persist a new bill; id, created_at and version are assigned here"""
        record = BillRecord(
            title=bill.title,
            description=bill.description,
            total_amount=bill.total_amount,
            currency=Currency(bill.currency).value,
            created_by=bill.created_by,
            status=BillStatus(bill.status).value,
            shares=_share_records(bill.shares),
        )
        self.db.add(record)
        self.db.flush()
        return _to_bill(record)

    def update_bill_status(self, bill_id: str, status: BillStatus, expected_version: Optional[int] = None) -> int:
        """
        Set a bill's status and return its new version.

        Raises:
            BillNotFoundError: bill does not exist
            ConcurrentMergeConflict: bill changed since expected_version was read
        """
        record = self._load_for_write(bill_id, expected_version)
        record.status = BillStatus(status).value
        return self._flush_versioned(record)

    def update_bill_shares(self, bill_id: str, shares: Iterable[BillShare], expected_version: Optional[int] = None) -> int:
        """Replace a bill's shares and return its new version"""
        record = self._load_for_write(bill_id, expected_version)
        record.shares = _share_records(shares)
        return self._flush_versioned(record)

    def update_bill_details(self, bill_id: str, bill: Bill, expected_version: Optional[int] = None) -> int:
        """Overwrite title, description, total and shares; returns the new version"""
        record = self._load_for_write(bill_id, expected_version)
        record.title = bill.title
        record.description = bill.description
        record.total_amount = bill.total_amount
        record.shares = _share_records(bill.shares)
        return self._flush_versioned(record)

    def delete_bill(self, bill_id: str) -> bool:
        record = self.db.get(BillRecord, bill_id)
        if not record:
            return False
        self.db.delete(record)
        self.db.flush()
        return True

    # ===== PRIVATE HELPERS =====

    def _load_for_write(self, bill_id: str, expected_version: Optional[int]) -> BillRecord:
        record = self.db.get(BillRecord, bill_id, populate_existing=True)
        if record is None:
            raise BillNotFoundError(f"Bill {bill_id} not found")
        if expected_version is not None and record.version != expected_version:
            raise ConcurrentMergeConflict(
                f"Bill {bill_id} is at version {record.version}, expected {expected_version}"
            )
        return record

    def _flush_versioned(self, record: BillRecord) -> int:
        # Touching updated_at forces a row UPDATE, which bumps the version counter
        record.updated_at = datetime.now(timezone.utc)
        try:
            self.db.flush()
        except StaleDataError as e:
            raise ConcurrentMergeConflict(f"Bill {record.id} was modified concurrently") from e
        return record.version
