"""Customer insight derivation.

Turns a flat list of transactions into per-customer behavioural metrics:
visit frequency, spending trend, lifetime value, recency and segment.
Insights are recomputed on every read and are deterministic for a given
transaction set and reference instant ``now``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from loyalty_insights.analyses.segmentation import (
    CustomerSegment,
    classify_segment,
    merchant_average_spend,
)
from loyalty_insights.analyses.trend import SpendingTrend, spending_trend
from loyalty_insights.config import InsightConfig
from loyalty_insights.foundation.aggregation import (
    aggregate_customer,
    completed_transactions,
    group_by_customer,
)
from loyalty_insights.foundation.records import Customer, LoyaltyAccount, Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerInsight:
    """Derived metrics for one customer at one merchant.

    Attributes
    ----------
    customer:
        The customer the insight describes.
    total_spent / total_transactions / average_order_value:
        Completed-transaction aggregates.
    last_visit_at / days_since_last_visit:
        Recency; both None when the customer never visited.
    visit_frequency:
        Visits per 30-day month since joining, with at least one month
        assumed so brand-new customers are not inflated.
    spending_trend:
        Recent versus previous 30-day spend.
    recent_spending:
        Completed spend in the trailing 30-day window.
    customer_lifetime_value:
        Currently equal to total spend.
    segment:
        VIP / Regular / New / Inactive relative to the merchant average.
    loyalty_points:
        Current balance, when an account was supplied.
    last_transaction:
        Newest completed transaction, if any.
    """

    customer: Customer
    total_spent: Decimal
    total_transactions: int
    average_order_value: Decimal
    last_visit_at: datetime | None
    days_since_last_visit: int | None
    visit_frequency: Decimal
    spending_trend: SpendingTrend
    recent_spending: Decimal
    customer_lifetime_value: Decimal
    segment: CustomerSegment
    loyalty_points: int = 0
    last_transaction: Transaction | None = None

    @property
    def customer_id(self) -> str:
        return self.customer.customer_id


def visit_frequency(
    total_transactions: int,
    customer_created_at: datetime,
    now: datetime,
    config: InsightConfig | None = None,
) -> Decimal:
    """Visits per month since the customer joined (months floored at 1)."""

    config = config or InsightConfig()
    elapsed = now - customer_created_at
    months = Decimal(str(elapsed.total_seconds())) / Decimal(
        str(timedelta(days=config.visit_month_days).total_seconds())
    )
    return Decimal(total_transactions) / max(Decimal("1"), months)


def build_customer_insight(
    customer: Customer,
    transactions: Sequence[Transaction],
    now: datetime,
    average_spend: Decimal,
    *,
    account: LoyaltyAccount | None = None,
    config: InsightConfig | None = None,
) -> CustomerInsight:
    """Derive the insight for one customer.

    Parameters
    ----------
    customer:
        Customer record; its ``created_at`` drives visit frequency and
        the New segment.
    transactions:
        The customer's transactions at this merchant. Non-completed rows
        and duplicate ids are ignored.
    now:
        Reference instant for recency and trend windows.
    average_spend:
        Merchant-wide average total spend, used for segmentation.
    account:
        Optional loyalty account supplying the current point balance.
    """

    config = config or InsightConfig()
    completed = completed_transactions(transactions)
    aggregate = aggregate_customer(completed, now)
    trend, windows = spending_trend(completed, now, config)
    segment = classify_segment(
        aggregate.total_spent,
        average_spend,
        aggregate.days_since_last_visit,
        customer.created_at,
        now,
        config,
    )

    return CustomerInsight(
        customer=customer,
        total_spent=aggregate.total_spent,
        total_transactions=aggregate.total_transactions,
        average_order_value=aggregate.average_order_value,
        last_visit_at=aggregate.last_visit_at,
        days_since_last_visit=aggregate.days_since_last_visit,
        visit_frequency=visit_frequency(
            aggregate.total_transactions, customer.created_at, now, config
        ),
        spending_trend=trend,
        recent_spending=windows.recent_spend,
        customer_lifetime_value=aggregate.total_spent,
        segment=segment,
        loyalty_points=account.current_points if account is not None else 0,
        last_transaction=aggregate.last_transaction,
    )


def build_customer_insights(
    customers: Iterable[Customer],
    transactions: Iterable[Transaction],
    now: datetime,
    *,
    accounts: Mapping[str, LoyaltyAccount] | None = None,
    config: InsightConfig | None = None,
) -> list[CustomerInsight]:
    """Derive insights for every customer of one merchant.

    The merchant-wide average is taken over all supplied customers,
    including those without completed transactions. Transactions for
    customers not in ``customers`` are ignored.

    Returns
    -------
    list[CustomerInsight]
        One insight per customer, sorted by customer_id.
    """

    config = config or InsightConfig()
    accounts = accounts or {}
    customer_list = list(customers)
    by_customer = group_by_customer(completed_transactions(transactions))

    known = {customer.customer_id for customer in customer_list}
    orphaned = set(by_customer) - known
    if orphaned:
        logger.warning(
            "Ignoring transactions for %d customers without a customer record",
            len(orphaned),
        )

    totals = {
        customer.customer_id: sum(
            (txn.amount for txn in by_customer.get(customer.customer_id, [])),
            Decimal("0"),
        )
        for customer in customer_list
    }
    average_spend = merchant_average_spend(totals.values())

    insights = [
        build_customer_insight(
            customer,
            by_customer.get(customer.customer_id, []),
            now,
            average_spend,
            account=accounts.get(customer.customer_id),
            config=config,
        )
        for customer in customer_list
    ]
    insights.sort(key=lambda insight: insight.customer_id)
    return insights
