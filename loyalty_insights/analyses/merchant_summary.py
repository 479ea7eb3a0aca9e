"""Merchant dashboard summary.

Provides a snapshot of a merchant's trading over a recent range (7, 30 or
90 days), answering questions like:
- How much did we sell and to how many customers?
- What does an average day and an average transaction look like?
- Who are our best customers right now?
- How did the last week go, day by day?
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Mapping

from loyalty_insights.config import InsightConfig
from loyalty_insights.foundation.aggregation import completed_transactions
from loyalty_insights.foundation.records import Customer, Transaction

# Currency precision for reported averages
CURRENCY_PRECISION = Decimal("0.01")


class DashboardRange(str, Enum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"

    @property
    def days(self) -> int:
        return int(self.value[:-1])


@dataclass(frozen=True)
class TopCustomer:
    customer_id: str
    name: str
    total_spent: Decimal
    visits: int


@dataclass(frozen=True)
class DailyActivity:
    day: date
    transactions: int
    sales: Decimal
    customers: int


@dataclass(frozen=True)
class MerchantSummary:
    """Dashboard results for one merchant over one range.

    Attributes
    ----------
    range:
        The range the summary covers, ending at ``as_of``.
    total_sales / total_transactions / unique_customers:
        Totals over completed transactions in the range.
    avg_daily_transactions / avg_daily_sales:
        Averages over the days in the range that had any activity.
    avg_transaction_value:
        ``total_sales / total_transactions``; zero when empty.
    top_customers:
        Highest spenders in the range, best first.
    daily:
        Per-day activity for the trailing days ending at ``as_of``,
        oldest first, with zero rows for quiet days.
    """

    range: DashboardRange
    as_of: datetime
    total_sales: Decimal
    total_transactions: int
    unique_customers: int
    avg_daily_transactions: Decimal
    avg_daily_sales: Decimal
    avg_transaction_value: Decimal
    top_customers: list[TopCustomer]
    daily: list[DailyActivity]

    def __post_init__(self) -> None:
        if self.total_transactions < 0:
            raise ValueError(
                f"Total transactions cannot be negative: {self.total_transactions}"
            )
        if self.unique_customers > self.total_transactions:
            raise ValueError(
                f"Unique customers ({self.unique_customers}) cannot exceed "
                f"transactions ({self.total_transactions})"
            )
        if self.total_sales < 0:
            raise ValueError(f"Total sales cannot be negative: {self.total_sales}")


def _customer_label(customer_id: str, customers: Mapping[str, Customer]) -> str:
    customer = customers.get(customer_id)
    if customer is not None and customer.full_name:
        return customer.full_name
    return f"Customer {customer_id[:8]}..."


def summarize_merchant(
    transactions: Iterable[Transaction],
    now: datetime,
    range_: DashboardRange = DashboardRange.LAST_30_DAYS,
    *,
    customers: Mapping[str, Customer] | None = None,
    config: InsightConfig | None = None,
) -> MerchantSummary:
    """Build the dashboard summary for transactions dated within the range.

    A transaction is in range when ``created_at >= now - range.days``.
    Daily buckets use the calendar date of each timestamp as stored.

    Examples
    --------
    >>> from datetime import datetime
    >>> from decimal import Decimal
    >>> now = datetime(2024, 6, 30, 18)
    >>> txns = [
    ...     Transaction("T1", "C1", "M1", Decimal("20"), datetime(2024, 6, 30, 9)),
    ...     Transaction("T2", "C2", "M1", Decimal("10"), datetime(2024, 6, 29, 9)),
    ... ]
    >>> summary = summarize_merchant(txns, now, DashboardRange.LAST_7_DAYS)
    >>> summary.total_sales, summary.unique_customers
    (Decimal('30'), 2)
    """

    config = config or InsightConfig()
    customers = customers or {}
    range_ = DashboardRange(range_)
    start = now - timedelta(days=range_.days)
    in_range = [txn for txn in completed_transactions(transactions) if txn.created_at >= start]

    by_day: dict[date, dict[str, object]] = {}
    by_customer: dict[str, dict[str, object]] = {}
    for txn in in_range:
        day_bucket = by_day.setdefault(
            txn.created_at.date(),
            {"count": 0, "total": Decimal("0"), "customers": set()},
        )
        day_bucket["count"] += 1
        day_bucket["total"] += txn.amount
        day_bucket["customers"].add(txn.customer_id)

        customer_bucket = by_customer.setdefault(
            txn.customer_id, {"total": Decimal("0"), "visits": 0}
        )
        customer_bucket["total"] += txn.amount
        customer_bucket["visits"] += 1

    total_sales = sum((txn.amount for txn in in_range), Decimal("0"))
    total_transactions = len(in_range)
    active_days = len(by_day)

    if active_days:
        avg_daily_transactions = (Decimal(total_transactions) / active_days).quantize(
            CURRENCY_PRECISION, rounding=ROUND_HALF_UP
        )
        avg_daily_sales = (total_sales / active_days).quantize(
            CURRENCY_PRECISION, rounding=ROUND_HALF_UP
        )
    else:
        avg_daily_transactions = Decimal("0")
        avg_daily_sales = Decimal("0")

    if total_transactions:
        avg_transaction_value = (total_sales / total_transactions).quantize(
            CURRENCY_PRECISION, rounding=ROUND_HALF_UP
        )
    else:
        avg_transaction_value = Decimal("0")

    ranked = sorted(
        by_customer.items(),
        key=lambda item: (-item[1]["total"], item[0]),
    )
    top_customers = [
        TopCustomer(
            customer_id=customer_id,
            name=_customer_label(customer_id, customers),
            total_spent=payload["total"],
            visits=payload["visits"],
        )
        for customer_id, payload in ranked[: config.top_customer_count]
    ]

    today = now.date()
    daily: list[DailyActivity] = []
    for offset in range(config.daily_series_days - 1, -1, -1):
        day = today - timedelta(days=offset)
        bucket = by_day.get(day)
        if bucket is None:
            daily.append(DailyActivity(day, 0, Decimal("0"), 0))
        else:
            daily.append(
                DailyActivity(
                    day,
                    bucket["count"],
                    bucket["total"],
                    len(bucket["customers"]),
                )
            )

    return MerchantSummary(
        range=range_,
        as_of=now,
        total_sales=total_sales,
        total_transactions=total_transactions,
        unique_customers=len(by_customer),
        avg_daily_transactions=avg_daily_transactions,
        avg_daily_sales=avg_daily_sales,
        avg_transaction_value=avg_transaction_value,
        top_customers=top_customers,
        daily=daily,
    )
