"""Qualitative customer segments and spending tiers.

Segments are relative: a customer's total spend is compared against the
merchant-wide average, so the same customer can move between segments as
the rest of the customer base changes.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable

from loyalty_insights.config import InsightConfig


class CustomerSegment(str, Enum):
    VIP = "VIP"
    REGULAR = "Regular"
    NEW = "New"
    INACTIVE = "Inactive"


class SpendingTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def merchant_average_spend(totals: Iterable[Decimal]) -> Decimal:
    """Mean total spend across a merchant's customers; zero if none."""

    values = list(totals)
    if not values:
        return Decimal("0")
    return sum(values, Decimal("0")) / len(values)


def classify_segment(
    total_spent: Decimal,
    average_spend: Decimal,
    days_since_last_visit: int | None,
    customer_created_at: datetime,
    now: datetime,
    config: InsightConfig | None = None,
) -> CustomerSegment:
    """Bucket a customer into a segment.

    Rules are checked in order and the first match wins, so a high
    spender who joined last week is VIP rather than New, and a VIP who
    has not been back for months stays VIP.

    1. VIP if spend exceeds ``average * vip_factor``
    2. Regular if spend exceeds ``average * regular_factor``
    3. Inactive if never visited or last visit older than ``inactive_after_days``
    4. New if created within ``new_customer_days``
    5. Regular otherwise
    """

    config = config or InsightConfig()
    if total_spent > average_spend * config.vip_factor:
        return CustomerSegment.VIP
    if total_spent > average_spend * config.regular_factor:
        return CustomerSegment.REGULAR
    if days_since_last_visit is None or days_since_last_visit > config.inactive_after_days:
        return CustomerSegment.INACTIVE
    if customer_created_at > now - timedelta(days=config.new_customer_days):
        return CustomerSegment.NEW
    return CustomerSegment.REGULAR


def spending_tier(
    total_spent: Decimal,
    average_spend: Decimal,
    config: InsightConfig | None = None,
) -> SpendingTier:
    """Place spend in the high / medium / low band around the average."""

    config = config or InsightConfig()
    if total_spent > average_spend * config.high_tier_factor:
        return SpendingTier.HIGH
    if total_spent < average_spend * config.low_tier_factor:
        return SpendingTier.LOW
    return SpendingTier.MEDIUM
