"""Bill status state machine"""

from typing import Dict, FrozenSet

from splitledger.domain.exceptions import InvalidStatusTransition
from splitledger.domain.models import BillStatus

ALLOWED_TRANSITIONS: Dict[BillStatus, FrozenSet[BillStatus]] = {
    BillStatus.UNPAID: frozenset({BillStatus.PENDING}),
    BillStatus.PENDING: frozenset({BillStatus.COMPLETED, BillStatus.MERGED}),
    BillStatus.COMPLETED: frozenset(),
    BillStatus.MERGED: frozenset(),
}


def can_transition(current: BillStatus, target: BillStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: BillStatus, target: BillStatus) -> None:
    """Raise InvalidStatusTransition unless current -> target is allowed"""
    if not can_transition(current, target):
        raise InvalidStatusTransition(f"Cannot move bill from {current.value} to {target.value}")
