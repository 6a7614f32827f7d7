"""
Temporal Aggregator.

Rolls transactions up by calendar month and by category.  Everything here
is derived data: recompute whenever the transaction set changes, never edit
the results in place.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from cashflow.logging_setup import get_logger
from cashflow.schema import CategoryTotal, MonthlyAggregate, Transaction

logger = get_logger("aggregator")


def month_key(d: date) -> str:
    """``YYYY-MM`` for the month containing *d*."""
    return f"{d.year:04d}-{d.month:02d}"


def _cents(value: float) -> float:
    return round(value, 2)


def totals(transactions: Iterable[Transaction]) -> Tuple[float, float, float]:
    """``(income, expenses, net)`` over any subset of transactions."""
    income = 0.0
    expenses = 0.0
    for t in transactions:
        if t.amount > 0:
            income += t.amount
        elif t.amount < 0:
            expenses += abs(t.amount)
    return _cents(income), _cents(expenses), _cents(income - expenses)


def aggregate(transactions: Iterable[Transaction]) -> List[MonthlyAggregate]:
    """Monthly income / expense / net, ascending by month key."""
    groups: Dict[str, List[Transaction]] = defaultdict(list)
    for t in transactions:
        groups[month_key(t.date)].append(t)

    result: List[MonthlyAggregate] = []
    for key in sorted(groups):
        income, expenses, net = totals(groups[key])
        result.append(
            MonthlyAggregate(month_key=key, income=income, expenses=expenses, net=net)
        )

    logger.debug("Aggregated %d month(s)", len(result))
    return result


def category_breakdown(transactions: Iterable[Transaction]) -> List[CategoryTotal]:
    """Expense magnitude per category, largest first.

    Income never appears here; only negative amounts are summed.
    """
    sums: Dict[str, float] = defaultdict(float)
    for t in transactions:
        if t.amount < 0:
            sums[t.category] += abs(t.amount)

    # Stable sort keeps first-seen order among equal totals.
    ordered = sorted(sums.items(), key=lambda kv: kv[1], reverse=True)
    return [CategoryTotal(category=c, total=_cents(v)) for c, v in ordered]


def filter_by_month(transactions: Iterable[Transaction], key: str) -> List[Transaction]:
    return [t for t in transactions if month_key(t.date) == key]


def filter_by_range(
    transactions: Iterable[Transaction],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Transaction]:
    """Transactions dated within ``[start, end]``; either bound may be open."""
    return [
        t for t in transactions
        if (start is None or t.date >= start) and (end is None or t.date <= end)
    ]


def latest_month(transactions: Sequence[Transaction]) -> Optional[str]:
    """Month key of the most recent transaction, or ``None`` if empty."""
    if not transactions:
        return None
    return month_key(max(t.date for t in transactions))
