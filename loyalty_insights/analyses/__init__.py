"""Insight analyses built on the foundation aggregates."""

from .customer_insight import (
    CustomerInsight,
    build_customer_insight,
    build_customer_insights,
    visit_frequency,
)
from .customer_listing import (
    CSV_HEADERS,
    CustomerPage,
    SortField,
    SortOrder,
    filter_and_sort,
    listing_rows,
    paginate,
)
from .merchant_summary import (
    DailyActivity,
    DashboardRange,
    MerchantSummary,
    TopCustomer,
    summarize_merchant,
)
from .segmentation import (
    CustomerSegment,
    SpendingTier,
    classify_segment,
    merchant_average_spend,
    spending_tier,
)
from .trend import (
    SpendingTrend,
    TrendWindows,
    classify_trend,
    spend_windows,
    spending_trend,
)

__all__ = [
    "CSV_HEADERS",
    "CustomerInsight",
    "CustomerPage",
    "CustomerSegment",
    "DailyActivity",
    "DashboardRange",
    "MerchantSummary",
    "SortField",
    "SortOrder",
    "SpendingTier",
    "SpendingTrend",
    "TopCustomer",
    "TrendWindows",
    "build_customer_insight",
    "build_customer_insights",
    "classify_segment",
    "classify_trend",
    "filter_and_sort",
    "listing_rows",
    "merchant_average_spend",
    "paginate",
    "spend_windows",
    "spending_tier",
    "spending_trend",
    "summarize_merchant",
    "visit_frequency",
]
