"""Net balance computation and greedy debtor/creditor matching.

Sign convention: a positive balance means the user owes money (debtor), a
negative balance means the user is owed money (creditor).
"""

import logging
from typing import Dict, Iterable, List, Tuple

from splitledger.domain.exceptions import BalanceInvariantViolation, InputInconsistencyError
from splitledger.domain.models import Bill, User

logger = logging.getLogger(__name__)

Position = Tuple[str, int]  # (user_id, magnitude)
Match = Tuple[str, str, int]  # (debtor_id, creditor_id, amount)


def validate_bills(bills: Iterable[Bill]) -> None:
    """
    Reject bills whose shares do not add up to their total.

    Every offending bill is reported at once; nothing is partially absorbed.

    Raises:
        InputInconsistencyError: with the ids of all offending bills
    """
    details: Dict[str, str] = {}
    for bill in bills:
        if any(share.amount < 0 for share in bill.shares):
            details[str(bill.id)] = "negative share amount"
            continue
        share_sum = sum(share.amount for share in bill.shares)
        if share_sum != bill.total_amount:
            details[str(bill.id)] = f"shares sum to {share_sum}, total is {bill.total_amount}"

    if details:
        raise InputInconsistencyError(details.keys(), details)


def compute_balances(bills: Iterable[Bill], users: Iterable[User]) -> Dict[str, int]:
    """
    Build the per-user net balance map for a single currency.

    Every known user starts at 0. For each unpaid share owed to someone else,
    the share owner's balance goes up and the bill creator's goes down by the
    same amount, so the map always sums to zero.
    """
    balances: Dict[str, int] = {user.id: 0 for user in users}
    currencies = set()

    for bill in bills:
        currencies.add(bill.currency)
        if bill.is_system_generated:
            logger.warning("Skipping system-generated bill with no creditor", extra={"bill_id": bill.id})
            continue

        for share in bill.outstanding_shares():
            if share.user_id not in balances:
                logger.warning(
                    "Share owner is not a known user",
                    extra={"bill_id": bill.id, "user_id": share.user_id},
                )
            balances[share.user_id] = balances.get(share.user_id, 0) + share.amount
            balances[bill.created_by] = balances.get(bill.created_by, 0) - share.amount

    if len(currencies) > 1:
        raise ValueError(f"Balances must be computed per currency, got {sorted(c.value for c in currencies)}")

    return balances


def split_positions(balances: Dict[str, int]) -> Tuple[List[Position], List[Position]]:
    """
    Separate debtors and creditors, largest first.

    Ties on amount are broken by user id ascending so identical input always
    yields identical ordering. Creditor magnitudes are stored as positive ints.
    """
    debtors = [(user_id, amount) for user_id, amount in balances.items() if amount > 0]
    creditors = [(user_id, -amount) for user_id, amount in balances.items() if amount < 0]

    debtors.sort(key=lambda p: (-p[1], p[0]))
    creditors.sort(key=lambda p: (-p[1], p[0]))
    return debtors, creditors


def match_greedy(debtors: List[Position], creditors: List[Position]) -> List[Match]:
    """
    Two-pointer greedy match of sorted debtors against sorted creditors.

    Each step settles min(debtor remaining, creditor remaining) and advances
    whichever side reaches zero. Produces at most len(debtors) + len(creditors) - 1
    matches; this is not guaranteed to be the global minimum number of payments.

    Raises:
        BalanceInvariantViolation: if anything is left over on either side
    """
    debtors = list(debtors)
    creditors = list(creditors)
    matches: List[Match] = []

    debtor_idx = 0
    creditor_idx = 0

    while debtor_idx < len(debtors) and creditor_idx < len(creditors):
        debtor_id, debtor_amt = debtors[debtor_idx]
        creditor_id, creditor_amt = creditors[creditor_idx]

        match_amt = min(debtor_amt, creditor_amt)
        if match_amt > 0:
            matches.append((debtor_id, creditor_id, match_amt))

        debtor_amt -= match_amt
        creditor_amt -= match_amt

        if debtor_amt == 0:
            debtor_idx += 1
        else:
            debtors[debtor_idx] = (debtor_id, debtor_amt)

        if creditor_amt == 0:
            creditor_idx += 1
        else:
            creditors[creditor_idx] = (creditor_id, creditor_amt)

    leftover = sum(amt for _, amt in debtors[debtor_idx:]) + sum(amt for _, amt in creditors[creditor_idx:])
    if leftover:
        raise BalanceInvariantViolation(
            f"{leftover} minor units left unmatched after greedy settlement"
        )

    return matches
