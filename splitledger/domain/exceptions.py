"""Domain-specific exceptions"""

from typing import Dict, Iterable, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidAmountError(DomainException):
    """Monetary value cannot be represented in minor units"""

    pass


class InputInconsistencyError(DomainException):
    """One or more bills have shares that do not add up to their total"""

    def __init__(self, bill_ids: Iterable[str], details: Optional[Dict[str, str]] = None):
        self.bill_ids = list(bill_ids)
        self.details = details or {}
        reasons = "; ".join(f"{bill_id}: {self.details.get(bill_id, 'inconsistent shares')}" for bill_id in self.bill_ids)
        super().__init__(f"Inconsistent bills rejected: {reasons}")


class BalanceInvariantViolation(DomainException):
    """Debtor and creditor balances did not cancel out (internal bug)"""

    pass


class ConcurrentMergeConflict(DomainException):
    """Bill set changed between read and write, or another merge holds the lock"""

    retryable = True


class InvalidStatusTransition(DomainException):
    """Requested bill status change is not allowed"""

    pass


class BillNotFoundError(DomainException):
    """Bill does not exist"""

    pass
