"""SQLAlchemy ORM models for users, bills and bill shares"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, BigInteger, Boolean, DateTime, Integer, ForeignKey, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRecord(Base):
    """Ledger participant"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class BillRecord(Base):
    """Expense bill; version is bumped on every status or share write"""

    __tablename__ = "bills"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    total_amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False, index=True)
    created_by = Column(String(36), nullable=False, default="", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    status = Column(String(16), nullable=False, default="unpaid", index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    version = Column(Integer, nullable=False)

    shares = relationship(
        "BillShareRecord",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillShareRecord.position",
    )

    # Optimistic concurrency: flush issues UPDATE ... WHERE version = :expected
    __mapper_args__ = {"version_id_col": version}


class BillShareRecord(Base):
    """One participant's share of a bill"""

    __tablename__ = "bill_shares"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bill_id = Column(String(36), ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    user_id = Column(String(36), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    paid = Column(Boolean, nullable=False, default=False)

    bill = relationship("BillRecord", back_populates="shares")
