"""Settlement calculator - minimal-ish payment list that clears every balance"""

from typing import Dict, Iterable, List, Sequence

from splitledger.domain.balances import compute_balances, match_greedy, split_positions, validate_bills
from splitledger.domain.models import Bill, BillStatus, Currency, Settlement, User
from splitledger.domain.partition import concat_in_currency_order, partition_by_currency

SETTLEMENT_STATUSES = frozenset({BillStatus.PENDING})


def settle_currency(bills: Sequence[Bill], users: Sequence[User], currency: Currency) -> List[Settlement]:
    """
    Compute settlements for bills that all share one currency.

    Steps:
    1. Net balance per user (positive owes, negative is owed)
    2. Debtors and creditors sorted largest first, ties by user id
    3. Greedy match, emitting only positive amounts
    """
    balances = compute_balances(bills, users)
    debtors, creditors = split_positions(balances)

    return [
        Settlement(from_user=debtor_id, to_user=creditor_id, amount=amount, currency=currency)
        for debtor_id, creditor_id, amount in match_greedy(debtors, creditors)
    ]


def compute_settlements(
    bills: Iterable[Bill],
    users: Iterable[User],
    statuses: Iterable[BillStatus] = SETTLEMENT_STATUSES,
) -> List[Settlement]:
    """
    Main entry point: pure settlement report across all currencies.

    Bills outside `statuses` are ignored. Inconsistent bills fail the whole
    call with InputInconsistencyError. Results are grouped by currency in
    declared order, never mixing currencies.
    """
    eligible_statuses = frozenset(statuses)
    users = list(users)
    eligible = [bill for bill in bills if bill.status in eligible_statuses]

    validate_bills(eligible)

    per_currency: Dict[Currency, List[Settlement]] = {
        currency: settle_currency(group, users, currency)
        for currency, group in partition_by_currency(eligible).items()
    }
    return concat_in_currency_order(per_currency)
