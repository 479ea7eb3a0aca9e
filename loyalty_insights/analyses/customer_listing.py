"""Sorting, filtering and paging of customer insights for listings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Sequence

from loyalty_insights.analyses.customer_insight import CustomerInsight
from loyalty_insights.analyses.segmentation import (
    SpendingTier,
    merchant_average_spend,
    spending_tier,
)
from loyalty_insights.config import InsightConfig
from loyalty_insights.errors import ValidationError
from loyalty_insights.foundation.records import CustomerStatus


class SortField(str, Enum):
    NAME = "name"
    TOTAL_SPENT = "total_spent"
    LOYALTY_POINTS = "loyalty_points"
    LAST_VISIT = "last_visit"
    CREATED_AT = "created_at"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class CustomerPage:
    """One page of a filtered, sorted listing."""

    items: list[CustomerInsight]
    page: int
    page_size: int
    total_items: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.page_size)


def _sort_key(field: SortField):
    if field is SortField.NAME:
        return lambda insight: insight.customer.full_name.lower()
    if field is SortField.TOTAL_SPENT:
        return lambda insight: insight.total_spent
    if field is SortField.LOYALTY_POINTS:
        return lambda insight: insight.loyalty_points
    if field is SortField.LAST_VISIT:
        # Never-visited customers sort as the oldest possible visit.
        return lambda insight: (
            insight.last_visit_at is not None,
            insight.last_visit_at.timestamp() if insight.last_visit_at else 0.0,
        )
    if field is SortField.CREATED_AT:
        return lambda insight: insight.customer.created_at
    raise ValidationError(f"Unsupported sort field: {field}")  # pragma: no cover


def filter_and_sort(
    insights: Sequence[CustomerInsight],
    *,
    search: str | None = None,
    status: CustomerStatus | None = None,
    tier: SpendingTier | None = None,
    sort_by: SortField = SortField.NAME,
    order: SortOrder = SortOrder.ASC,
    config: InsightConfig | None = None,
) -> list[CustomerInsight]:
    """Apply search, status and spending-tier filters, then sort.

    The tier average is taken over the full, unfiltered ``insights`` list
    so that narrowing by status does not shift the tier boundaries.
    """

    config = config or InsightConfig()
    result = list(insights)

    if search:
        needle = search.lower()
        result = [
            insight
            for insight in result
            if needle in insight.customer.full_name.lower()
            or needle in (insight.customer.email or "").lower()
            or needle in insight.customer.customer_code.lower()
        ]

    if status is not None:
        status = CustomerStatus(status)
        result = [insight for insight in result if insight.customer.status is status]

    if tier is not None:
        tier = SpendingTier(tier)
        average: Decimal = merchant_average_spend(i.total_spent for i in insights)
        result = [
            insight
            for insight in result
            if spending_tier(insight.total_spent, average, config) is tier
        ]

    result.sort(key=_sort_key(SortField(sort_by)), reverse=SortOrder(order) is SortOrder.DESC)
    return result


def paginate(
    insights: Sequence[CustomerInsight],
    page: int = 1,
    page_size: int | None = None,
    config: InsightConfig | None = None,
) -> CustomerPage:
    """Slice ``insights`` into a 1-indexed page."""

    config = config or InsightConfig()
    page_size = page_size or config.page_size
    if page < 1:
        raise ValidationError(f"Page must be at least 1: {page}", {"page": page})
    if page_size < 1:
        raise ValidationError(
            f"Page size must be positive: {page_size}", {"page_size": page_size}
        )
    start = (page - 1) * page_size
    return CustomerPage(
        items=list(insights[start : start + page_size]),
        page=page,
        page_size=page_size,
        total_items=len(insights),
    )


CSV_HEADERS = (
    "Customer Code",
    "First Name",
    "Last Name",
    "Email",
    "Phone",
    "Status",
    "Total Spent",
    "Total Transactions",
    "Loyalty Points",
    "Created At",
    "Last Visit",
)


def listing_rows(insights: Sequence[CustomerInsight]) -> list[tuple[str, ...]]:
    """Rows for the customer CSV export, in :data:`CSV_HEADERS` order."""

    rows: list[tuple[str, ...]] = []
    for insight in insights:
        customer = insight.customer
        last_visit: datetime | None = insight.last_visit_at
        rows.append(
            (
                customer.customer_code,
                customer.first_name,
                customer.last_name,
                customer.email or "",
                customer.phone or "",
                customer.status.value,
                f"{insight.total_spent:.2f}",
                str(insight.total_transactions),
                str(insight.loyalty_points),
                customer.created_at.date().isoformat(),
                last_visit.date().isoformat() if last_visit else "Never",
            )
        )
    return rows
