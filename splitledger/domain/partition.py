"""Currency partitioner - split bills per currency and reassemble results in declared order"""

from typing import Dict, Iterable, List, Mapping, TypeVar

from splitledger.domain.models import Bill, Currency

T = TypeVar("T")


def partition_by_currency(bills: Iterable[Bill]) -> Dict[Currency, List[Bill]]:
    """
    Group bills by currency.

    Only currencies that actually occur get a key, and keys come out in the
    declared Currency order so downstream iteration is stable.
    """
    grouped: Dict[Currency, List[Bill]] = {}
    for bill in bills:
        grouped.setdefault(Currency(bill.currency), []).append(bill)
    return {currency: grouped[currency] for currency in Currency if currency in grouped}


def concat_in_currency_order(results: Mapping[Currency, List[T]]) -> List[T]:
    """Flatten per-currency results, lower declared currency first"""
    combined: List[T] = []
    for currency in Currency:
        combined.extend(results.get(currency, []))
    return combined
