"""Integer minor-unit money helpers.

All ledger arithmetic runs on ints. Decimal is used only at the edge, to turn a
display value such as "12.34" into minor units and back.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, List, Sequence, Union

from splitledger.domain.exceptions import InvalidAmountError
from splitledger.domain.models import BillShare, Currency

MINOR_UNIT_EXPONENT: Dict[Currency, int] = {
    Currency.CNY: 2,  # fen
    Currency.JPY: 0,  # yen has no minor subdivision
}

DisplayAmount = Union[Decimal, str, int, float]

# Largest amount a BIGINT column can hold
MAX_MINOR_UNITS = 2**63 - 1


def _to_decimal(value: DisplayAmount) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAmountError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    else:
        # floats go through their shortest repr, never through binary expansion
        try:
            amount = Decimal(str(value))
        except InvalidOperation as e:
            raise InvalidAmountError(f"Not a monetary amount: {value!r}") from e
    if not amount.is_finite():
        raise InvalidAmountError(f"Amount must be finite: {value!r}")
    return amount


def to_minor_units(value: DisplayAmount, currency: Currency) -> int:
    """
    Convert a display amount to integer minor units.

    Rounds half away from zero: 0.005 CNY -> 1, -0.005 CNY -> -1, 2.5 JPY -> 3.
    Values beyond MAX_MINOR_UNITS raise InvalidAmountError.
    """
    exponent = MINOR_UNIT_EXPONENT[currency]
    scaled = _to_decimal(value).scaleb(exponent)
    try:
        minor = int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    except InvalidOperation as e:
        raise InvalidAmountError(f"Amount out of range: {value!r}") from e
    ensure_in_range(minor)
    return minor


def ensure_in_range(amount: int) -> None:
    """Reject minor-unit amounts that cannot be stored"""
    if abs(amount) > MAX_MINOR_UNITS:
        raise InvalidAmountError(f"Amount out of range: {amount}")


def from_minor_units(amount: int, currency: Currency) -> Decimal:
    """Convert minor units back to an exact Decimal display value"""
    exponent = MINOR_UNIT_EXPONENT[currency]
    return Decimal(amount).scaleb(-exponent)


def format_minor_units(amount: int, currency: Currency) -> str:
    """Render minor units with the currency's number of decimals, e.g. 12345 CNY -> '123.45'"""
    exponent = MINOR_UNIT_EXPONENT[currency]
    quantum = Decimal(1).scaleb(-exponent)
    return str(from_minor_units(amount, currency).quantize(quantum))


def split_evenly(total: int, participant_ids: Sequence[str], remainder_to: str) -> List[BillShare]:
    """
    Split total minor units equally, giving the division remainder to one participant.

    Requirements:
    - Every participant except the designated one gets total // n
    - Designated participant absorbs the remainder so shares sum exactly to total
    - If remainder_to is not a participant, the first participant absorbs it

    Example:
        301 across [A, B, C], remainder_to=A -> A=101, B=100, C=100
    """
    if not participant_ids:
        return []
    if total < 0:
        raise InvalidAmountError("Cannot split a negative total")

    participant_ids = list(dict.fromkeys(participant_ids))
    per_person = total // len(participant_ids)
    designated = remainder_to if remainder_to in participant_ids else participant_ids[0]
    others_total = per_person * (len(participant_ids) - 1)

    return [
        BillShare(
            user_id=user_id,
            amount=total - others_total if user_id == designated else per_person,
        )
        for user_id in participant_ids
    ]
