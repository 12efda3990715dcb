"""Bill netting - plan how PENDING bills collapse into one merged bill per creditor.

Planning is pure; persisting the plan atomically is the ledger service's job.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from splitledger.domain.balances import compute_balances, match_greedy, split_positions, validate_bills
from splitledger.domain.models import Bill, BillShare, BillStatus, Currency, User
from splitledger.domain.partition import partition_by_currency

MIN_BILLS_TO_MERGE = 2


class MergeStrategy(str, Enum):
    """How outstanding shares are consolidated"""

    NET = "net"  # net balances across all creditors first
    BY_CREATOR = "by_creator"  # sum gross unpaid shares per creator


@dataclass
class MergePlan:
    """Writes needed to merge one currency group"""

    currency: Currency
    merged_bills: List[Bill] = field(default_factory=list)
    retired: List[Bill] = field(default_factory=list)  # -> MERGED
    completed: List[Bill] = field(default_factory=list)  # fully paid -> COMPLETED


def _net_allocations(bills: Sequence[Bill], users: Sequence[User]) -> Dict[str, List[BillShare]]:
    """Each creditor, largest first, pulls from one shared pool of debtors"""
    balances = compute_balances(bills, users)
    debtors, creditors = split_positions(balances)

    allocations: Dict[str, List[BillShare]] = {}
    for debtor_id, creditor_id, amount in match_greedy(debtors, creditors):
        allocations.setdefault(creditor_id, []).append(BillShare(user_id=debtor_id, amount=amount))
    return allocations


def _by_creator_allocations(bills: Sequence[Bill]) -> Dict[str, List[BillShare]]:
    """Sum unpaid shares per (creator, owner) without netting across creators"""
    owed: Dict[str, Dict[str, int]] = {}
    for bill in bills:
        per_user = owed.setdefault(bill.created_by, {})
        for share in bill.outstanding_shares():
            per_user[share.user_id] = per_user.get(share.user_id, 0) + share.amount

    return {
        creator_id: [BillShare(user_id=user_id, amount=amount) for user_id, amount in per_user.items()]
        for creator_id, per_user in owed.items()
        if per_user
    }


def _merged_bill(
    creditor_id: str,
    shares: List[BillShare],
    currency: Currency,
    creditor_name: str,
    source_count: int,
) -> Bill:
    return Bill(
        title=f"Merged bill - {creditor_name} ({currency.value})",
        description=f"Automatically merged {source_count} {currency.value} bills",
        total_amount=sum(share.amount for share in shares),
        currency=currency,
        created_by=creditor_id,
        shares=shares,
        status=BillStatus.PENDING,
    )


def plan_currency_merge(
    bills: Sequence[Bill],
    users: Sequence[User],
    currency: Currency,
    strategy: MergeStrategy = MergeStrategy.NET,
) -> Optional[MergePlan]:
    """
    Plan the merge of one currency group.

    Requirements:
    - Only PENDING bills are considered
    - Fewer than 2 of them with outstanding shares means no plan
    - Bills with outstanding shares are retired as MERGED
    - Bills whose shares are all paid are marked COMPLETED instead
    - System-generated bills have no creditor and stay PENDING
    - One merged bill per creditor with a non-empty allocation

    Returns None when the group is below the merge threshold.
    """
    pending = [bill for bill in bills if bill.status == BillStatus.PENDING]
    if len(pending) < MIN_BILLS_TO_MERGE:
        return None

    validate_bills(pending)

    candidates = [bill for bill in pending if not bill.is_system_generated]
    retired = [bill for bill in candidates if not bill.is_fully_paid()]
    completed = [bill for bill in candidates if bill.is_fully_paid()]
    if len(retired) < MIN_BILLS_TO_MERGE:
        return None

    if strategy == MergeStrategy.BY_CREATOR:
        allocations = _by_creator_allocations(retired)
    else:
        allocations = _net_allocations(retired, users)

    names = {user.id: user.name for user in users}
    merged_bills = []
    for creditor_id, shares in allocations.items():
        shares = [share for share in shares if share.amount > 0]
        if not shares:
            continue
        if strategy == MergeStrategy.BY_CREATOR:
            source_count = sum(1 for bill in retired if bill.created_by == creditor_id)
        else:
            source_count = len(retired)
        merged_bills.append(
            _merged_bill(creditor_id, shares, currency, names.get(creditor_id, creditor_id), source_count)
        )

    return MergePlan(currency=currency, merged_bills=merged_bills, retired=retired, completed=completed)


def plan_merge(
    bills: Iterable[Bill],
    users: Iterable[User],
    strategy: MergeStrategy = MergeStrategy.NET,
) -> Dict[Currency, MergePlan]:
    """Plan every currency group independently, in declared currency order"""
    users = list(users)
    plans: Dict[Currency, MergePlan] = {}
    for currency, group in partition_by_currency(bills).items():
        plan = plan_currency_merge(group, users, currency, strategy)
        if plan is not None:
            plans[currency] = plan
    return plans
