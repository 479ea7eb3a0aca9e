"""Per-customer aggregation of completed transactions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Sequence

from loyalty_insights.foundation.records import Transaction

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class CustomerAggregate:
    """Summary statistics for one customer at one merchant.

    Attributes
    ----------
    total_spent:
        Exact sum of completed transaction amounts.
    total_transactions:
        Number of completed transactions.
    average_order_value:
        ``total_spent / total_transactions``; zero when there are none.
    last_visit_at:
        Timestamp of the newest completed transaction, or None if the
        customer never visited.
    days_since_last_visit:
        Whole days between ``last_visit_at`` and the reference instant,
        or None if the customer never visited. Zero means "today".
    last_transaction:
        The newest completed transaction itself, if any.
    """

    total_spent: Decimal
    total_transactions: int
    average_order_value: Decimal
    last_visit_at: datetime | None
    days_since_last_visit: int | None
    last_transaction: Transaction | None = None

    def __post_init__(self) -> None:
        if self.total_transactions < 0:
            raise ValueError(
                f"Transaction count cannot be negative: {self.total_transactions}"
            )
        if (self.last_visit_at is None) != (self.days_since_last_visit is None):
            raise ValueError(
                "last_visit_at and days_since_last_visit must both be set or both be None"
            )


EMPTY_AGGREGATE = CustomerAggregate(
    total_spent=Decimal("0"),
    total_transactions=0,
    average_order_value=Decimal("0"),
    last_visit_at=None,
    days_since_last_visit=None,
)


def completed_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Keep completed transactions only, one per id, newest first."""

    seen: set[str] = set()
    kept: list[Transaction] = []
    for txn in transactions:
        if not txn.is_completed or txn.transaction_id in seen:
            continue
        seen.add(txn.transaction_id)
        kept.append(txn)
    # Stable sort: equal timestamps keep their input order.
    kept.sort(key=lambda txn: txn.created_at, reverse=True)
    return kept


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Floor of ``(later - earlier)`` in days."""

    return (later - earlier) // ONE_DAY


def aggregate_customer(
    transactions: Sequence[Transaction], now: datetime
) -> CustomerAggregate:
    """Reduce one customer's transactions into a :class:`CustomerAggregate`.

    Non-completed transactions are ignored. The input is expected newest
    first but is re-sorted, so the result never depends on input order.

    Examples
    --------
    >>> from datetime import datetime
    >>> from decimal import Decimal
    >>> txns = [
    ...     Transaction("T1", "C1", "M1", Decimal("12.50"), datetime(2024, 3, 9)),
    ...     Transaction("T2", "C1", "M1", Decimal("7.50"), datetime(2024, 3, 1)),
    ... ]
    >>> agg = aggregate_customer(txns, now=datetime(2024, 3, 10, 12))
    >>> agg.total_spent, agg.total_transactions, agg.days_since_last_visit
    (Decimal('20.00'), 2, 1)
    """

    completed = completed_transactions(transactions)
    if not completed:
        return EMPTY_AGGREGATE

    total_spent = sum((txn.amount for txn in completed), Decimal("0"))
    total_transactions = len(completed)
    newest = completed[0]
    days_since = whole_days_between(newest.created_at, now)
    if days_since < 0:
        logger.warning(
            "Transaction %s is dated after the reference instant %s",
            newest.transaction_id,
            now.isoformat(),
        )

    return CustomerAggregate(
        total_spent=total_spent,
        total_transactions=total_transactions,
        average_order_value=total_spent / total_transactions,
        last_visit_at=newest.created_at,
        days_since_last_visit=days_since,
        last_transaction=newest,
    )


def group_by_customer(
    transactions: Iterable[Transaction],
) -> dict[str, list[Transaction]]:
    """Bucket transactions by customer id, preserving input order."""

    grouped: dict[str, list[Transaction]] = {}
    for txn in transactions:
        grouped.setdefault(txn.customer_id, []).append(txn)
    return grouped


def spend_in_window(
    transactions: Iterable[Transaction], start: datetime, end: datetime
) -> Decimal:
    """Sum completed amounts with ``start < created_at <= end``."""

    return sum(
        (
            txn.amount
            for txn in transactions
            if txn.is_completed and start < txn.created_at <= end
        ),
        Decimal("0"),
    )
